# app/core/errors.py
"""
Error taxonomy for the invitation / OTP workflow.

Every service-side failure is raised as a WorkflowError subclass and turned
into a uniform ``{"success": false, "error": ..., "reason": ...}`` body by the
handlers registered in ``app.main``. The client package reuses ValidationError
so malformed input is rejected before any network call.
"""


class WorkflowError(Exception):
    status_code: int = 400
    reason: str = "error"
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(WorkflowError):
    status_code = 422
    reason = "validation_error"
    default_message = "Invalid input."


class InvalidOrExpiredToken(WorkflowError):
    reason = "invalid_token"
    default_message = "Invalid or expired invite token."


class InvalidCode(WorkflowError):
    reason = "invalid_code"
    default_message = "Invalid verification code."


class Expired(WorkflowError):
    reason = "expired"
    default_message = "The code or link has expired."


class CredentialAlreadyUsed(WorkflowError):
    status_code = 409
    reason = "already_used"
    default_message = "This code or link has already been used."


class PersistenceError(WorkflowError):
    status_code = 500
    reason = "persistence_error"
    default_message = "Could not save the verification code."


class DeliveryError(WorkflowError):
    status_code = 502
    reason = "delivery_error"
    default_message = "Email could not be delivered."


class IdentityProviderError(WorkflowError):
    status_code = 500
    reason = "identity_error"
    default_message = "Could not update the account."


class AccountLocked(WorkflowError):
    status_code = 423
    reason = "account_locked"
    default_message = "Too many failed attempts. Reset your password to unlock the account."


class NotAuthenticated(WorkflowError):
    status_code = 401
    reason = "not_authenticated"
    default_message = "Invalid credentials."


class Forbidden(WorkflowError):
    status_code = 403
    reason = "forbidden"
    default_message = "Insufficient role."
