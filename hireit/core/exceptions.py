"""Domain errors shared by the resolver, the Firestore boundary and the routers."""

from typing import Optional


class DomainError(Exception):
    def __init__(self, message: str, status_code: int = 400, detail: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        # What the caller is shown; defaults to the internal message.
        self.detail = detail or message
        super().__init__(message)


class MalformedRecordError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 500, "Transaction data is incomplete, please contact support")


class RoleResolutionError(DomainError):
    """The current user's role in a transaction could not be determined."""


class NotAPartyError(RoleResolutionError):
    def __init__(self, message: str = "user is not a party to this transaction"):
        super().__init__(message, 403, "You do not have permission to review this transaction")


class SelfReviewError(RoleResolutionError):
    def __init__(self, message: str = "transaction has no distinct counter-party; cannot review self"):
        super().__init__(message, 500, "Something went wrong, please contact support")
