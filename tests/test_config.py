from __future__ import annotations

import json
import logging
import os

import pytest

from invoicing import config as config_module
from invoicing import env as env_module
from invoicing.config import Settings, load_settings
from invoicing.container import create_app_container
from invoicing.errors import UnknownBranchError
from invoicing.logging_setup import setup_logging
from invoicing.models import Customer


_ENV_NAMES = [
    "INV_BACKEND_URL",
    "AADE_USER_ID",
    "AADE_SUBSCRIPTION_KEY",
    "INV_USE_TESTING_ENDPOINT",
    "INV_DB_PATH",
    "INV_HTTP_TIMEOUT",
    "GSIS_USERNAME",
    "GSIS_PASSWORD",
    "INV_BRANCHES_FILE",
    "INV_LOG_DIR",
    "INV_DEBUG",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "load_env", lambda: None)
    return monkeypatch


def test_defaults(clean_env) -> None:
    settings = load_settings()

    assert settings.backend_url == "http://localhost:3000"
    assert settings.use_testing_endpoint is True
    assert settings.db_path == "storage/invoicing.db"
    assert settings.http_timeout_s == 30.0
    assert settings.branches_file is None
    assert settings.debug is False


def test_values_from_environment(clean_env) -> None:
    clean_env.setenv("INV_BACKEND_URL", "http://proxy:9000/")
    clean_env.setenv("AADE_USER_ID", "user-1")
    clean_env.setenv("AADE_SUBSCRIPTION_KEY", "secret-key")
    clean_env.setenv("INV_USE_TESTING_ENDPOINT", "0")
    clean_env.setenv("INV_HTTP_TIMEOUT", "12.5")

    settings = load_settings()

    assert settings.backend_url == "http://proxy:9000"
    assert settings.aade_user_id == "user-1"
    assert settings.use_testing_endpoint is False
    assert settings.http_timeout_s == 12.5
    assert "secret-key" not in repr(settings)


@pytest.mark.parametrize("raw", ["abc", "-3", "0"])
def test_invalid_timeout_falls_back(clean_env, raw: str) -> None:
    clean_env.setenv("INV_HTTP_TIMEOUT", raw)
    assert load_settings().http_timeout_s == 30.0


def test_dotenv_does_not_override_real_environment(tmp_path, monkeypatch) -> None:
    (tmp_path / ".env").write_text(
        "INV_DOTENV_FILE_ONLY=from-file\nINV_DOTENV_KEEP=from-file\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("INV_DOTENV_KEEP", "from-env")
    monkeypatch.setattr(env_module, "_LOADED", False)
    try:
        loaded = env_module.load_env()
        assert loaded is not None
        assert loaded.resolve() == (tmp_path / ".env").resolve()
        assert os.environ["INV_DOTENV_FILE_ONLY"] == "from-file"
        assert os.environ["INV_DOTENV_KEEP"] == "from-env"
        assert env_module.load_env() is None
    finally:
        os.environ.pop("INV_DOTENV_FILE_ONLY", None)


def test_setup_logging_writes_rotating_file(tmp_path, monkeypatch) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.delenv("INV_DEBUG", raising=False)
    monkeypatch.delattr(root, "_inv_logging_configured", raising=False)
    try:
        setup_logging(str(tmp_path / "logs"))
        logging.getLogger("invoicing.test").info("submission.sent")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.INFO
        assert "submission.sent" in (tmp_path / "logs" / "invoicing.log").read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        if hasattr(root, "_inv_logging_configured"):
            del root._inv_logging_configured


def test_container_wires_sqlite_store(tmp_path, fake_aade, clock, restaurant_invoice) -> None:
    container = create_app_container(
        Settings(db_path=str(tmp_path / "invoicing.db")),
        client=fake_aade,
        clock=clock,
    )

    outcome = container.gateway.submit(restaurant_invoice)

    assert outcome.ok
    assert [entry.mark for entry in container.ledger.entries()] == [outcome.mark]
    assert container.gateway.next_invoice_number("central") == "0002"
    assert container.settings.use_testing_endpoint is True
    assert outcome.payload.meta.sandbox is True


def test_container_customers_helper(container) -> None:
    container.customers("villa1").save(Customer(name="Guest", vat="555"))

    assert container.customers("villa1").find("555").name == "Guest"
    with pytest.raises(UnknownBranchError):
        container.customers("harbour")


def test_container_loads_branch_file(tmp_path, store, fake_aade) -> None:
    branch_file = tmp_path / "branches.json"
    branch_file.write_text(
        json.dumps(
            {
                "harbour": {
                    "label": "Harbour Suites",
                    "series": "H-1",
                    "issuer": {"name": "Harbour OE", "vat": "066666666", "zip": "74100"},
                    "revenueMapping": {
                        "documentType": "1.1",
                        "allowedVatRates": [13],
                        "e3": {"code": "E3_ACCOMMODATION"},
                        "surchargeRule": {"mode": "perNight", "rate": 1.5},
                    },
                }
            }
        ),
        encoding="utf-8",
    )

    container = create_app_container(Settings(branches_file=str(branch_file)), store=store, client=fake_aade)
    harbour = container.branches.default

    assert harbour.id == "harbour"
    assert harbour.accepts_surcharge
    assert harbour.issuer.postal_code == "74100"
    assert harbour.revenue_mapping.allowed_vat_rates == (13.0,)


def test_container_configures_logging_from_settings(tmp_path, monkeypatch, store, fake_aade) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.delenv("INV_DEBUG", raising=False)
    monkeypatch.delattr(root, "_inv_logging_configured", raising=False)
    try:
        create_app_container(
            Settings(log_dir=str(tmp_path / "logs"), debug=True),
            store=store,
            client=fake_aade,
            configure_logging=True,
        )
        logging.getLogger("invoicing.test").debug("sequence.synced")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert "sequence.synced" in (tmp_path / "logs" / "invoicing.log").read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        if hasattr(root, "_inv_logging_configured"):
            del root._inv_logging_configured


def test_container_leaves_logging_alone_by_default(store, fake_aade) -> None:
    root = logging.getLogger()
    handlers = list(root.handlers)

    create_app_container(Settings(), store=store, client=fake_aade)

    assert root.handlers == handlers
