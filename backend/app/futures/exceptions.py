"""Exception types for the futures subsystem."""

from __future__ import annotations


class FuturesError(Exception):
    """Base class for all futures subsystem errors."""


class UpstreamError(FuturesError):
    """The upstream feed could not be reached or answered with a non-200 status."""

    def __init__(self, symbol: str, message: str) -> None:
        super().__init__(message)
        self.symbol = symbol


class ParseError(FuturesError):
    """The upstream payload did not have the expected JSONP structure."""


class ValidationError(FuturesError):
    """Caller input was missing or malformed. Raised before any I/O."""


class SeriesFetchError(FuturesError):
    """A series could not be produced for a symbol.

    Wraps the underlying UpstreamError / ParseError so callers get the symbol
    and the operation that failed alongside the original cause.
    """

    def __init__(self, symbol: str, operation: str, cause: BaseException) -> None:
        super().__init__(f"Failed to {operation} for {symbol}: {cause}")
        self.symbol = symbol
        self.operation = operation
        self.cause = cause
