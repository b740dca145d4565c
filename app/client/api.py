# app/client/api.py
"""
Thin HTTP client over the auth endpoints, used by the invite and reset flows.

Any object with a requests-style ``post(url, json=..., headers=...)`` works as
the session (a ``requests.Session`` by default, FastAPI's TestClient in tests).
"""
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-success answer from the API, or no answer at all (status_code None)."""

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason

    @property
    def is_locked(self) -> bool:
        return self.status_code == 423 or self.reason == "account_locked"


class AuthApiClient:
    def __init__(self, base_url: str = "", session: Any = None, access_token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.access_token = access_token

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}
        try:
            res = self.session.post(f"{self.base_url}{path}", json=payload, headers=headers)
        except requests.RequestException as e:
            logger.warning("POST %s failed: %s", path, e)
            raise ApiError("Network error, please try again.") from e

        try:
            data = res.json()
        except ValueError:
            data = {}
        if res.status_code >= 400 or data.get("success") is False:
            raise ApiError(
                data.get("error") or f"Request failed ({res.status_code})",
                status_code=res.status_code,
                reason=data.get("reason"),
            )
        return data

    # --- issuance ---

    def issue(self, email: str, kind: str, inviter_name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"email": email, "kind": kind}
        if inviter_name:
            payload["inviterName"] = inviter_name
        return self._post("/auth/issue", payload)

    # --- confirmation ---

    def confirm_invite(self, token: str, email: str, action: str) -> Dict[str, Any]:
        return self._post("/auth/invite/confirm", {"token": token, "email": email, "action": action})

    def verify_otp(self, email: str, otp: str, kind: str) -> Dict[str, Any]:
        return self._post("/auth/otp/verify", {"email": email, "otp": otp, "kind": kind})

    def reset_password(self, reset_token: str, new_password: str) -> Dict[str, Any]:
        return self._post("/auth/password/reset", {"resetToken": reset_token, "newPassword": new_password})

    # --- session ---

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._post("/auth/login", {"email": email, "password": password})
        self.access_token = data.get("access_token")
        return data
