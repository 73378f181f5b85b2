class PromoError(Exception):
    """Business-rule failure; ``str(exc)`` is the client-facing message."""


class PromoValidationError(PromoError):
    pass


class PromoConflictError(PromoError):
    pass


class PromoNotFoundError(PromoError):
    pass


class PromoInactiveError(PromoError):
    pass


class PromoAlreadyRedeemedError(PromoError):
    pass
