from __future__ import annotations

import logging

import httpx

from invoicing.models import Customer


logger = logging.getLogger(__name__)

LOOKUP_PATH = "/api/gsis/lookup-customer"


class GsisClient:
    """VAT registry lookup through the local proxy. Failures return None."""

    def __init__(
        self,
        base_url: str,
        *,
        username: str = "",
        password: str = "",
        timeout_s: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self._username = username
        self._password = password
        self._http = http_client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self._http.close()

    def lookup_customer(self, vat: str) -> Customer | None:
        vat = (vat or "").strip()
        if not vat:
            return None
        params = {"vat": vat}
        if self._username and self._password:
            params.update({"username": self._username, "password": self._password})
        try:
            resp = self._http.get(f"{self.base_url}{LOOKUP_PATH}", params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("gsis.lookup_failed", extra={"vat": vat, "error": str(exc)})
            return None
        if not isinstance(data, dict) or not data.get("ok"):
            logger.warning("gsis.lookup_rejected", extra={"vat": vat})
            return None
        return Customer(
            name=str(data.get("name") or ""),
            vat=str(data.get("vat") or vat),
            address=str(data.get("address") or ""),
            city=str(data.get("city") or ""),
            postal_code=str(data.get("postalCode") or ""),
        )
