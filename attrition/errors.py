"""
Attrition Exceptions
====================

Exception hierarchy for the attrition pipeline. Every error raised on purpose
by the package extends AttritionError so callers can catch the family.
"""

from __future__ import annotations

from typing import Sequence


class AttritionError(Exception):
    """Base exception for all attrition pipeline errors."""

    pass


# =============================================================================
# Input Exceptions
# =============================================================================


class MalformedRecordError(AttritionError, ValueError):
    """A record is missing required attributes or carries unparsable values."""

    def __init__(self, reason: str, attributes: Sequence[str] = ()) -> None:
        self.reason = reason
        self.attributes = list(attributes)
        if self.attributes:
            super().__init__(f"{reason}: {self.attributes}")
        else:
            super().__init__(reason)


class MalformedFeatureMatrixError(AttritionError, ValueError):
    """A feature matrix is empty or its rows have differing lengths."""

    pass


class UnseenCategoryError(AttritionError, ValueError):
    """A categorical value is absent from the encoding table."""

    def __init__(self, attribute: str, value: str) -> None:
        self.attribute = attribute
        self.value = value
        super().__init__(f"Unseen category {value!r} for attribute '{attribute}'")


# =============================================================================
# Model Exceptions
# =============================================================================


class ModelNotReadyError(AttritionError, RuntimeError):
    """Prediction or analysis was requested before a model exists."""

    def __init__(self, reason: str = "Model unavailable; train a model first") -> None:
        super().__init__(reason)


class TrainingError(AttritionError, RuntimeError):
    """The fit loop failed; any previous model stays current."""

    pass


class TrainingCancelledError(TrainingError):
    """A training run was aborted through its cancellation event."""

    def __init__(self, epoch: int) -> None:
        self.epoch = epoch
        super().__init__(f"Training cancelled after {epoch} completed epoch(s)")


class TrainingInProgressError(AttritionError, RuntimeError):
    """A retrain was requested while another one is still running."""

    pass
