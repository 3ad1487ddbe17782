# Domain errors raised by the escrow, approval and payment services.
# server.py maps them to JSON error responses using status_code.


class MarketplaceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MarketplaceError):
    status_code = 404


class PermissionDeniedError(MarketplaceError):
    status_code = 403


class EscrowError(MarketplaceError):
    """Escrow invariant would be broken (over-funding, double release...)."""


class InsufficientFundsError(EscrowError):
    pass


class ApprovalStateError(MarketplaceError):
    """Action not allowed from the collaboration's current approval state."""
    status_code = 409


class TazapayError(MarketplaceError):
    status_code = 502


class MetricsUnavailableError(MarketplaceError):
    pass
