"""Exceptions raised by the job card engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Mapping, Optional, Tuple

from .repository import RecordNotFoundError

if TYPE_CHECKING:  # pragma: no cover
    from .domain import JobCard, JobCardStatus


class JobCardError(RuntimeError):
    """Base exception for job card generation and resolution errors."""


class ConfigurationError(JobCardError):
    """Raised when the caller supplied an invalid step selection."""


class EmptySelectionError(ConfigurationError):
    """Raised when a selection resolves to no template steps."""


class ResolutionError(JobCardError):
    """Raised when referenced catalog or graph data is inconsistent."""


class MissingProcessError(ResolutionError):
    """Raised when a template step references an unknown process."""

    def __init__(self, process_id: str, step_no: int) -> None:
        super().__init__(
            f"Step {step_no} references process {process_id!r} which is not in the catalog"
        )
        self.process_id = process_id
        self.step_no = step_no


class DanglingDependencyError(ResolutionError):
    """Raised when a dependency id does not resolve to any job card.

    ``job_cards`` holds the resolved list in which the affected cards were
    left blocked, so callers may still use the rest of the result.
    """

    def __init__(
        self,
        dangling: Mapping[str, Iterable[str]],
        job_cards: Optional[List["JobCard"]] = None,
    ) -> None:
        self.dangling = {card_id: tuple(ids) for card_id, ids in dangling.items()}
        self.job_cards = job_cards
        details = ", ".join(
            f"{card_id} -> {', '.join(ids)}" for card_id, ids in self.dangling.items()
        )
        super().__init__(f"Unknown dependency ids: {details}")

    @property
    def job_card_ids(self) -> Tuple[str, ...]:
        return tuple(self.dangling)


class CircularDependencyError(ResolutionError):
    """Raised when re-pointing dependencies would introduce a cycle."""


class InvalidTransitionError(JobCardError):
    """Raised when an event is not permitted in the job card's state."""

    def __init__(self, job_card_id: str, status: "JobCardStatus", reason: str) -> None:
        super().__init__(f"Job card {job_card_id!r} ({status.value}): {reason}")
        self.job_card_id = job_card_id
        self.status = status
        self.reason = reason


class JobCardNotFoundError(JobCardError, RecordNotFoundError):
    """Raised when an event targets a job card that is not in the graph."""


__all__ = [
    "JobCardError",
    "ConfigurationError",
    "EmptySelectionError",
    "ResolutionError",
    "MissingProcessError",
    "DanglingDependencyError",
    "CircularDependencyError",
    "InvalidTransitionError",
    "JobCardNotFoundError",
]
