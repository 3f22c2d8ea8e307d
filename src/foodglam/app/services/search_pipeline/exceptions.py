from __future__ import annotations

"""Exceptions raised by search pipeline components."""


class InvalidSearchQuery(ValueError):
    """Exception raised when a provided search request is malformed."""


class StoreUnavailable(RuntimeError):
    """Raised when the recipe store cannot be reached at all.

    Individual failed queries are not reported this way; only conditions that
    make every further store call pointless (closed pool, connection failure,
    acquisition timeout).
    """


__all__ = ["InvalidSearchQuery", "StoreUnavailable"]
