"""Exception hierarchy.

The forecasting core only raises ``ContractViolation``: insufficient or
degenerate data always resolves to a documented fallback value instead of an
error. The remaining classes belong to the outer layer (feed, API, CLI).
"""


class TaiXiuError(Exception):
    """Base class for all errors raised by this package."""


class ContractViolation(TaiXiuError, ValueError):
    """The caller broke an input contract (negative lookback, missing history)."""


class FeedError(TaiXiuError):
    """The upstream history feed could not be fetched or parsed."""


class InsufficientDataError(TaiXiuError):
    """No usable rounds were available to serve a request."""
