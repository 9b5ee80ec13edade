"""Exception types raised by the booking, administration and auth layers."""


class RealtyBookingError(Exception):
    """Base class for all domain errors in this package."""


class InvalidRuleError(RealtyBookingError):
    """An availability rule draft failed validation."""


class RuleNotFoundError(RealtyBookingError):
    """The rule does not exist or does not belong to the acting admin."""


class InputFetchError(RealtyBookingError):
    """Rules or bookings could not be fetched; nothing was resolved."""


class ConcurrentBookingConflictError(RealtyBookingError):
    """The store rejected a booking overlapping an existing one.

    Callers should re-resolve availability rather than retry the insert.
    """


class AuthenticationRequiredError(RealtyBookingError):
    """The action needs a signed-in visitor with a profile."""


class AuthorizationError(RealtyBookingError):
    """The signed-in visitor lacks the capability for this action."""


class AuthBackendError(RealtyBookingError):
    """The auth backend rejected a request (bad credentials, unconfirmed email)."""
