"""
Errors raised by the account e-mail flows.

Issuance failures share one base class so callers can report a single
generic failure while the logs keep the underlying cause.
"""


class TokenIssuanceError(Exception):
    """Raised when a verification or reset e-mail could not be issued"""
    pass


class PersistenceError(TokenIssuanceError):
    """Raised when the customer record could not be updated"""
    pass


class DeliveryError(TokenIssuanceError):
    """Raised when the mail transport rejects or cannot reach the relay/API"""

    def __init__(self, message: str, transport: str = "unknown"):
        super().__init__(message)
        self.transport = transport


class TokenRedemptionError(Exception):
    """Raised when a presented token cannot be redeemed"""
    pass
