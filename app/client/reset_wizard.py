# app/client/reset_wizard.py
"""
Admin login / password-reset wizard.

The wizard is a single ``WizardState`` moved forward by ``transition(state,
event)``; there are no independent boolean flags, so combinations such as
"locked out while entering a new password" cannot be represented.

    LOGIN --fail x threshold / 423--> LOCKED_OUT
    LOGIN | LOCKED_OUT --StartReset--> RESET_REQUEST --CodeSent--> OTP_ENTRY
    OTP_ENTRY --CodeVerified--> NEW_PASSWORD --PasswordChanged--> DONE
    LOGIN | LOCKED_OUT | DONE --LoginSucceeded--> DONE

A login attempt is accepted from LOGIN, LOCKED_OUT and DONE, so logging in
with a fresh password right after a reset works, and retrying while locked
stays on LOCKED_OUT.

``Back`` returns to the previous screen and drops everything collected after it.
"""
import logging
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict

from app.client.api import ApiError, AuthApiClient
from app.core.config import settings
from app.core.errors import ValidationError
from app.core.security import normalize_email, validate_email, validate_otp, validate_password

logger = logging.getLogger(__name__)


class WizardStep(str, Enum):
    LOGIN = "login"
    LOCKED_OUT = "locked_out"
    RESET_REQUEST = "reset_request"
    OTP_ENTRY = "otp_entry"
    NEW_PASSWORD = "new_password"
    DONE = "done"


class WizardState(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: WizardStep = WizardStep.LOGIN
    email: str = ""
    reset_token: Optional[str] = None
    error: Optional[str] = None
    # failed password logins per normalized email, mirrored from the server
    failed_attempts: Dict[str, int] = {}
    threshold: int = 3

    def is_locked(self, email: str) -> bool:
        return self.failed_attempts.get(normalize_email(email), 0) >= self.threshold


# --- events ---

class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class LoginFailed(_Event):
    email: str
    message: str = "Invalid email or password."


class LoginLocked(_Event):
    email: str


class LoginSucceeded(_Event):
    email: str


class StartReset(_Event):
    pass


class CodeSent(_Event):
    email: str


class CodeVerified(_Event):
    reset_token: str


class PasswordChanged(_Event):
    pass


class Failed(_Event):
    message: str


class Back(_Event):
    pass


Event = Union[LoginFailed, LoginLocked, LoginSucceeded, StartReset, CodeSent,
              CodeVerified, PasswordChanged, Failed, Back]

LOCKED_MESSAGE = "Too many failed attempts. Reset your password to continue."

_BACK = {
    WizardStep.LOCKED_OUT: WizardStep.LOGIN,
    WizardStep.RESET_REQUEST: WizardStep.LOGIN,
    WizardStep.OTP_ENTRY: WizardStep.RESET_REQUEST,
    # the code is spent once verified, so going back means asking for a new one
    WizardStep.NEW_PASSWORD: WizardStep.RESET_REQUEST,
}


# steps where a password login may be attempted
_LOGIN_STEPS = (WizardStep.LOGIN, WizardStep.LOCKED_OUT, WizardStep.DONE)


class InvalidTransition(ValueError):
    pass


def _attempts(state: WizardState, email: str, count: Optional[int]) -> Dict[str, int]:
    attempts = dict(state.failed_attempts)
    if count is None:
        attempts.pop(normalize_email(email), None)
    else:
        attempts[normalize_email(email)] = count
    return attempts


def transition(state: WizardState, event: Event) -> WizardState:
    step = state.step

    if isinstance(event, Failed):
        # a failed login attempt from DONE lands back on the login screen
        next_step = WizardStep.LOGIN if step == WizardStep.DONE else step
        return state.model_copy(update={"step": next_step, "error": event.message})

    if isinstance(event, Back) and step in _BACK:
        return WizardState(
            step=_BACK[step],
            email=state.email,
            failed_attempts=state.failed_attempts,
            threshold=state.threshold,
        )

    if step in _LOGIN_STEPS:
        if isinstance(event, LoginFailed):
            count = state.failed_attempts.get(normalize_email(event.email), 0) + 1
            attempts = _attempts(state, event.email, count)
            if count >= state.threshold:
                return state.model_copy(update={
                    "step": WizardStep.LOCKED_OUT, "email": normalize_email(event.email),
                    "failed_attempts": attempts, "error": LOCKED_MESSAGE,
                })
            return state.model_copy(update={
                "step": WizardStep.LOGIN, "email": normalize_email(event.email),
                "failed_attempts": attempts, "error": event.message,
            })
        if isinstance(event, LoginLocked):
            return state.model_copy(update={
                "step": WizardStep.LOCKED_OUT, "email": normalize_email(event.email),
                "failed_attempts": _attempts(state, event.email, state.threshold), "error": LOCKED_MESSAGE,
            })
        if isinstance(event, LoginSucceeded):
            return state.model_copy(update={
                "step": WizardStep.DONE, "email": normalize_email(event.email),
                "failed_attempts": _attempts(state, event.email, None), "error": None,
            })

    if step in (WizardStep.LOGIN, WizardStep.LOCKED_OUT) and isinstance(event, StartReset):
        return state.model_copy(update={"step": WizardStep.RESET_REQUEST, "error": None, "reset_token": None})

    if step in (WizardStep.RESET_REQUEST, WizardStep.OTP_ENTRY) and isinstance(event, CodeSent):
        # also covers "resend" while on the code screen
        return state.model_copy(update={
            "step": WizardStep.OTP_ENTRY, "email": normalize_email(event.email), "error": None,
        })

    if step == WizardStep.OTP_ENTRY and isinstance(event, CodeVerified):
        return state.model_copy(update={
            "step": WizardStep.NEW_PASSWORD, "reset_token": event.reset_token, "error": None,
        })

    if step == WizardStep.NEW_PASSWORD and isinstance(event, PasswordChanged):
        return state.model_copy(update={
            "step": WizardStep.DONE, "reset_token": None, "error": None,
            "failed_attempts": _attempts(state, state.email, None),
        })

    raise InvalidTransition(f"{type(event).__name__} is not allowed in step {step.value}")


class ResetWizard:
    """Drives WizardState through the API. Input is validated before any request."""

    def __init__(self, api: AuthApiClient, threshold: Optional[int] = None):
        self.api = api
        self.state = WizardState(threshold=threshold or settings.login_lockout_threshold)

    def dispatch(self, event: Event) -> WizardState:
        self.state = transition(self.state, event)
        return self.state

    def _fail(self, message: str) -> WizardState:
        return self.dispatch(Failed(message=message))

    def login(self, email: str, password: str) -> WizardState:
        try:
            email = validate_email(email)
        except ValidationError as e:
            return self._fail(e.message)
        if self.state.is_locked(email):
            return self.dispatch(LoginLocked(email=email))

        try:
            self.api.login(email, password)
        except ApiError as e:
            if e.is_locked:
                return self.dispatch(LoginLocked(email=email))
            if e.status_code in (401, 403):
                return self.dispatch(LoginFailed(email=email, message=e.message))
            return self._fail(e.message)
        return self.dispatch(LoginSucceeded(email=email))

    def start_reset(self) -> WizardState:
        return self.dispatch(StartReset())

    def request_code(self, email: Optional[str] = None) -> WizardState:
        try:
            email = validate_email(email or self.state.email)
        except ValidationError as e:
            return self._fail(e.message)
        try:
            self.api.issue(email, "password_reset")
        except ApiError as e:
            return self._fail(e.message)
        return self.dispatch(CodeSent(email=email))

    def resend_code(self) -> WizardState:
        return self.request_code(self.state.email)

    def submit_code(self, otp: str) -> WizardState:
        try:
            otp = validate_otp(otp)
        except ValidationError as e:
            return self._fail(e.message)
        try:
            data = self.api.verify_otp(self.state.email, otp, "password_reset")
        except ApiError as e:
            return self._fail(e.message)
        return self.dispatch(CodeVerified(reset_token=data.get("resetToken") or ""))

    def submit_new_password(self, password: str, confirm: Optional[str] = None) -> WizardState:
        try:
            validate_password(password)
        except ValidationError as e:
            return self._fail(e.message)
        if confirm is not None and confirm != password:
            return self._fail("Passwords do not match.")
        try:
            self.api.reset_password(self.state.reset_token or "", password)
        except ApiError as e:
            return self._fail(e.message)
        logger.info("Password reset completed for %s", self.state.email)
        return self.dispatch(PasswordChanged())

    def back(self) -> WizardState:
        return self.dispatch(Back())
