from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from invoicing.env import load_env


logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class Settings:
    backend_url: str = "http://localhost:3000"
    aade_user_id: str = ""
    aade_subscription_key: str = ""
    use_testing_endpoint: bool = True
    db_path: str = "storage/invoicing.db"
    http_timeout_s: float = _DEFAULT_TIMEOUT_S
    gsis_username: str = ""
    gsis_password: str = ""
    branches_file: str | None = None
    log_dir: str = "./data/logs"
    debug: bool = False

    def __repr__(self) -> str:
        return (
            f"Settings(backend_url={self.backend_url!r}, aade_user_id={self.aade_user_id!r}, "
            f"use_testing_endpoint={self.use_testing_endpoint}, db_path={self.db_path!r})"
        )


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _timeout() -> float:
    raw = (os.getenv("INV_HTTP_TIMEOUT") or "").strip()
    if not raw:
        return _DEFAULT_TIMEOUT_S
    try:
        value = float(raw)
    except ValueError:
        logger.warning("config.invalid_timeout", extra={"value": raw})
        return _DEFAULT_TIMEOUT_S
    return value if value > 0 else _DEFAULT_TIMEOUT_S


def load_settings() -> Settings:
    load_env()
    return Settings(
        backend_url=(os.getenv("INV_BACKEND_URL", "http://localhost:3000") or "http://localhost:3000").strip().rstrip("/"),
        aade_user_id=os.getenv("AADE_USER_ID", "").strip(),
        aade_subscription_key=os.getenv("AADE_SUBSCRIPTION_KEY", "").strip(),
        use_testing_endpoint=_flag("INV_USE_TESTING_ENDPOINT", True),
        db_path=(os.getenv("INV_DB_PATH", "storage/invoicing.db") or "storage/invoicing.db").strip(),
        http_timeout_s=_timeout(),
        gsis_username=os.getenv("GSIS_USERNAME", "").strip(),
        gsis_password=os.getenv("GSIS_PASSWORD", ""),
        branches_file=(os.getenv("INV_BRANCHES_FILE") or "").strip() or None,
        log_dir=(os.getenv("INV_LOG_DIR") or "./data/logs").strip(),
        debug=os.getenv("INV_DEBUG") == "1",
    )
