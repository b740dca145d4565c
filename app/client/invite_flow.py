# app/client/invite_flow.py
"""Invitee side of an admin invitation: the page behind the emailed accept/decline links."""
import logging
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, ConfigDict

from app.client.api import ApiError, AuthApiClient

logger = logging.getLogger(__name__)

INVALID_LINK = "Invalid link. Missing parameters."


class InviteView(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    DECLINED = "declined"
    ACCEPTED = "accepted"


class InviteScreen(BaseModel):
    model_config = ConfigDict(frozen=True)

    view: InviteView
    message: str = ""
    password: Optional[str] = None


class InviteAcceptanceFlow:
    """Reads {token, email, action} from the link and confirms it exactly once.

    A network failure and a rejected token end in the same ERROR view; there is
    no retry.
    """

    def __init__(self, api: AuthApiClient, token: Optional[str], email: Optional[str], action: Optional[str]):
        self.api = api
        self.token = token
        self.email = email
        self.action = action
        self.screen = InviteScreen(view=InviteView.LOADING)
        self._ran = False

    @classmethod
    def from_url(cls, api: AuthApiClient, url: str) -> "InviteAcceptanceFlow":
        params = parse_qs(urlparse(url).query)
        first = lambda key: (params.get(key) or [None])[0]
        return cls(api, first("token"), first("email"), first("action"))

    def run(self) -> InviteScreen:
        if self._ran:
            return self.screen
        self._ran = True

        if not self.token or not self.email or self.action not in ("accept", "decline"):
            self.screen = InviteScreen(view=InviteView.ERROR, message=INVALID_LINK)
            return self.screen

        try:
            data = self.api.confirm_invite(self.token, self.email, self.action)
        except ApiError as e:
            logger.info("Invite confirmation failed for %s: %s", self.email, e.message)
            self.screen = InviteScreen(view=InviteView.ERROR, message=e.message)
            return self.screen

        if data.get("action") == "accepted":
            self.screen = InviteScreen(
                view=InviteView.ACCEPTED,
                message=data.get("message", ""),
                password=data.get("defaultPassword"),
            )
        else:
            self.screen = InviteScreen(view=InviteView.DECLINED, message=data.get("message", ""))
        return self.screen
