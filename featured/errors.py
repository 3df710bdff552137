"""Error types raised by the scoring pipeline."""

from __future__ import annotations


class FeaturedScoreError(RuntimeError):
    pass


class UpstreamQueryError(FeaturedScoreError):
    """A read against the row store or the reference provider failed."""


class NotFoundError(FeaturedScoreError):
    pass


class PersistenceError(FeaturedScoreError):
    """A score or prestige write was rejected by the row store."""


class BudgetExceeded(Exception):
    """Raised inside the batch job when the execution budget runs out."""
