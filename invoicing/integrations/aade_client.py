from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from invoicing.models import Payload


logger = logging.getLogger(__name__)

VALIDATE_PATH = "/api/aade/validate"
SUBMIT_PATH = "/api/aade/submit"
RETRY_PATH = "/api/aade/retry"
CANCEL_PATH = "/api/aade/cancel-invoice"


@dataclass(frozen=True)
class AadeCredentials:
    user_id: str
    subscription_key: str

    def __repr__(self) -> str:
        return f"AadeCredentials(user_id={self.user_id!r}, subscription_key='***')"


@dataclass(frozen=True)
class RemoteResult:
    ok: bool
    mark: Optional[str] = None
    cancel_mark: Optional[str] = None
    error: Optional[str] = None


class AadeGateway(Protocol):
    def validate(self, payload: Payload) -> RemoteResult:
        ...

    def submit(self, payload: Payload) -> RemoteResult:
        ...

    def retry(self, payload: Payload) -> RemoteResult:
        ...

    def cancel(self, invoice_number: str, branch_id: str, reason_code: str) -> RemoteResult:
        ...


def _error_from_response(resp: httpx.Response) -> str:
    detail = ""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        detail = str(body["error"])
    return f"HTTP {resp.status_code}: {detail}" if detail else f"HTTP {resp.status_code}"


class AadeClient(AadeGateway):
    """Client for the local myDATA proxy.

    Every failure (transport error, non-2xx status, malformed body) is turned
    into ``RemoteResult(ok=False, error=...)``; nothing here raises.
    """

    def __init__(
        self,
        base_url: str,
        credentials: AadeCredentials,
        *,
        use_testing_endpoint: bool = True,
        timeout_s: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self.credentials = credentials
        self.use_testing_endpoint = use_testing_endpoint
        self._http = http_client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self._http.close()

    def _auth(self) -> dict[str, Any]:
        return {
            "aadeUserId": self.credentials.user_id,
            "subscriptionKey": self.credentials.subscription_key,
        }

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self._http.post(url, json=body)
        except httpx.HTTPError as exc:
            logger.warning("aade.network_error", extra={"path": path, "error": str(exc)})
            return {"ok": False, "error": f"Network error: {exc}"}
        if resp.status_code >= 400:
            error = _error_from_response(resp)
            logger.warning("aade.http_error", extra={"path": path, "status_code": resp.status_code})
            return {"ok": False, "error": error}
        try:
            data = resp.json()
        except ValueError:
            logger.warning("aade.invalid_json", extra={"path": path})
            return {"ok": False, "error": "Invalid response from myDATA proxy"}
        if not isinstance(data, dict):
            return {"ok": False, "error": "Invalid response from myDATA proxy"}
        return data

    @staticmethod
    def _result(data: dict[str, Any]) -> RemoteResult:
        ok = bool(data.get("ok"))
        return RemoteResult(
            ok=ok,
            mark=str(data["mark"]) if data.get("mark") else None,
            error=None if ok else str(data.get("error") or "Unknown error"),
        )

    def validate(self, payload: Payload) -> RemoteResult:
        body = {**self._auth(), "invoicePayload": payload.to_json_dict()}
        return self._result(self._post(VALIDATE_PATH, body))

    def submit(self, payload: Payload) -> RemoteResult:
        body = {
            **self._auth(),
            "invoicePayload": payload.to_json_dict(),
            "useTestingEndpoint": self.use_testing_endpoint,
        }
        return self._result(self._post(SUBMIT_PATH, body))

    def retry(self, payload: Payload) -> RemoteResult:
        body = {
            **self._auth(),
            "invoicePayload": payload.to_json_dict(),
            "useTestingEndpoint": self.use_testing_endpoint,
        }
        return self._result(self._post(RETRY_PATH, body))

    def cancel(self, invoice_number: str, branch_id: str, reason_code: str) -> RemoteResult:
        body = {
            **self._auth(),
            "invoiceNumber": invoice_number,
            "branchId": branch_id,
            "cancelReasonCode": reason_code,
            "useTestingEndpoint": self.use_testing_endpoint,
        }
        data = self._post(CANCEL_PATH, body)
        cancel_mark = data.get("cancelMark")
        if cancel_mark and data.get("ok", True) is not False:
            return RemoteResult(ok=True, cancel_mark=str(cancel_mark))
        return RemoteResult(ok=False, error=str(data.get("error") or "Cancellation was not confirmed"))
