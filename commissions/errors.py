"""Error taxonomy for commission rate management."""
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from schemas.bulk import BulkRateResult


class CommissionError(Exception):
    """Base class for every error raised by the commission core."""


class ValidationError(CommissionError):
    """Rate bounds or the single-default-template invariant were violated."""

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class RateOutOfRangeError(ValidationError):
    """A rate pair breaks the bounds or carries more than 2 decimal places."""


class NotFoundError(CommissionError):
    """A referenced affiliate, template or tier does not exist (or is inactive)."""


class ConcurrencyError(CommissionError):
    """An optimistic version check failed during a write. Safe to retry."""


class PartialBatchFailure(CommissionError):
    """A bulk operation succeeded for some affiliates and failed for others."""

    def __init__(self, result: "BulkRateResult") -> None:
        super().__init__(
            f"{len(result.failed)} of "
            f"{len(result.failed) + len(result.succeeded)} affiliates failed"
        )
        self.result = result
