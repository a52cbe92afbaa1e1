# lifeexp/utils/errors.py
"""
Error kinds raised by the pipeline stages.

Every error carries the column / indicator names it concerns in `.columns`
so the caller can tell which part of the dataset broke the run. Nothing here
is retried: the pipeline aborts on the first one.
"""
from __future__ import annotations

from typing import Iterable, List, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, columns: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.message = message
        self.columns: List[str] = [str(c) for c in (columns or [])]

    def __str__(self) -> str:
        return self.message


class SchemaMismatch(PipelineError, KeyError):
    """A required indicator / column is absent from an upstream table."""


class DegenerateColumn(PipelineError, ValueError):
    """A column has zero spread, so it cannot be normalized."""


class TransformDomainError(PipelineError, ValueError):
    """Values fall outside the domain of a log or square-root transform."""


class RankDeficientDesign(PipelineError, ValueError):
    """The regression design matrix is not of full column rank."""


class ThresholdUnsatisfiable(PipelineError, ValueError):
    """Collinearity pruning cannot reach the threshold with at least one predictor."""
