"""Readiness state machine and dependency propagation for job cards.

``resolve_status`` applies one production event to a job card graph and then
re-derives the status of every card whose state is gated by its dependencies
(``Blocked``, ``Ready``, ``PendingMaterial``). Dependency lists are read fresh
on every pass; nothing is counted down incrementally, so applying the same
event twice or receiving events out of order cannot leave a card evaluated
against a partial set of completions.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .domain import (
    GATING_STATUSES,
    EventType,
    JobCard,
    JobCardStatus,
    ProductionEvent,
    utcnow,
)
from .errors import (
    CircularDependencyError,
    DanglingDependencyError,
    InvalidTransitionError,
    JobCardNotFoundError,
)
from .repository import index_by_id


def _find(job_cards: Sequence[JobCard], job_card_id: str) -> JobCard:
    for card in job_cards:
        if card.id == job_card_id:
            return card
    raise JobCardNotFoundError(f"Job card {job_card_id!r} not found")


def _derive_gated_status(
    card: JobCard, by_id: Dict[str, JobCard]
) -> Tuple[JobCardStatus, Tuple[str, ...], Tuple[str, ...]]:
    """Return (status, blocked_by, dangling ids) for a card in a gating state."""

    dangling = tuple(dep for dep in card.depends_on_job_card_ids if dep not in by_id)
    blocked_by = tuple(
        dep
        for dep in card.depends_on_job_card_ids
        if dep not in by_id or by_id[dep].status is not JobCardStatus.COMPLETED
    )
    if card.has_material_shortfall:
        return JobCardStatus.PENDING_MATERIAL, blocked_by, dangling
    if blocked_by:
        return JobCardStatus.BLOCKED, blocked_by, dangling
    return JobCardStatus.READY, blocked_by, dangling


def _apply_event(card: JobCard, event: ProductionEvent) -> JobCard:
    """Return the card after ``event``; raises without touching ``card``."""

    status = card.status
    kind = event.event_type
    now = utcnow()

    def moved(new_status: JobCardStatus, **changes) -> JobCard:
        return replace(
            card, status=new_status, updated_at=now, updated_by=event.actor, **changes
        )

    def reject(reason: str) -> InvalidTransitionError:
        return InvalidTransitionError(card.id, status, reason)

    if kind is EventType.START:
        if status is not JobCardStatus.READY:
            raise reject("only a Ready job card can be started")
        return moved(JobCardStatus.IN_PROGRESS)

    if kind is EventType.PAUSE:
        if status is not JobCardStatus.IN_PROGRESS:
            raise reject("only an InProgress job card can be paused")
        return moved(JobCardStatus.PAUSED)

    if kind is EventType.RESUME:
        if status is not JobCardStatus.PAUSED:
            raise reject("only a Paused job card can be resumed")
        return moved(JobCardStatus.IN_PROGRESS)

    if kind is EventType.COMPLETE:
        if status is JobCardStatus.COMPLETED:
            return card
        if status is not JobCardStatus.IN_PROGRESS:
            raise reject("only an InProgress job card can be completed")
        if card.completed_qty != card.quantity:
            raise reject(
                f"cannot complete: quantity mismatch "
                f"({card.completed_qty} of {card.quantity} completed)"
            )
        return moved(JobCardStatus.COMPLETED, in_progress_qty=0, blocked_by=tuple())

    if kind is EventType.CANCEL:
        if status is JobCardStatus.CANCELLED:
            return card
        if status is JobCardStatus.COMPLETED:
            raise reject("a Completed job card cannot be cancelled")
        return moved(JobCardStatus.CANCELLED)

    if kind is EventType.MATERIAL_UPDATE:
        if status.is_terminal:
            raise reject("material availability cannot change on a closed job card")
        shortfalls = tuple(event.shortfalls)
        if any(item.shortfall > 0 for item in shortfalls):
            return moved(JobCardStatus.PENDING_MATERIAL, material_shortfalls=shortfalls)
        if status is JobCardStatus.PENDING_MATERIAL:
            # Re-derived from dependencies during propagation.
            return moved(JobCardStatus.BLOCKED, material_shortfalls=shortfalls)
        return moved(status, material_shortfalls=shortfalls)

    if kind is EventType.RECORD_PRODUCTION:
        if status not in (JobCardStatus.IN_PROGRESS, JobCardStatus.PAUSED):
            raise reject("production can only be recorded while work is under way")
        completed = card.completed_qty + event.completed_qty
        rejected = card.rejected_qty + event.rejected_qty
        in_progress = (
            card.in_progress_qty if event.in_progress_qty is None else event.in_progress_qty
        )
        if min(completed, rejected, in_progress) < 0:
            raise reject("quantities cannot become negative")
        if completed + rejected + in_progress > card.quantity:
            raise reject(
                f"recorded quantities exceed the job card quantity of {card.quantity}"
            )
        return moved(
            status,
            completed_qty=completed,
            rejected_qty=rejected,
            in_progress_qty=in_progress,
        )

    raise reject(f"unsupported event {kind!r}")  # pragma: no cover


def _propagate(job_cards: List[JobCard]) -> Dict[str, Tuple[str, ...]]:
    """Re-derive every gated card in place; return dangling ids per card."""

    by_id = index_by_id(job_cards)
    dangling: Dict[str, Tuple[str, ...]] = {}
    for index, card in enumerate(job_cards):
        if card.status not in GATING_STATUSES:
            continue
        # Unknown ids count as blockers, so an affected card never turns Ready.
        status, blocked_by, missing = _derive_gated_status(card, by_id)
        if missing:
            dangling[card.id] = missing
        if status is not card.status or blocked_by != card.blocked_by:
            updated = replace(card, status=status, blocked_by=blocked_by, updated_at=utcnow())
            job_cards[index] = updated
            by_id[updated.id] = updated
    return dangling


def resolve_status(job_cards: Sequence[JobCard], event: ProductionEvent) -> List[JobCard]:
    """Apply ``event`` and return the updated job cards in their original order.

    The input sequence and its cards are left untouched. Invalid transitions
    raise ``InvalidTransitionError`` before anything changes.
    """

    target = _find(job_cards, event.job_card_id)
    updated = _apply_event(target, event)
    result = [updated if card.id == target.id else card for card in job_cards]
    dangling = _propagate(result)
    if dangling:
        raise DanglingDependencyError(dangling, job_cards=result)
    return result


def refresh_statuses(job_cards: Sequence[JobCard]) -> List[JobCard]:
    """Re-run propagation without an event; a no-op on a consistent graph."""

    result = list(job_cards)
    dangling = _propagate(result)
    if dangling:
        raise DanglingDependencyError(dangling, job_cards=result)
    return result


# ----------------------------------------------------------------------
# Graph queries
# ----------------------------------------------------------------------
@dataclass(slots=True)
class DependencyCheck:
    can_start: bool
    blocked_by: List[JobCard]
    blocks: List[JobCard]


@dataclass(slots=True)
class CriticalPath:
    path: List[JobCard]
    total_time_min: float


def find_dependents(job_card_id: str, job_cards: Iterable[JobCard]) -> List[JobCard]:
    return [card for card in job_cards if job_card_id in card.depends_on_job_card_ids]


def check_dependencies(job_card_id: str, job_cards: Sequence[JobCard]) -> DependencyCheck:
    card = _find(job_cards, job_card_id)
    by_id = index_by_id(list(job_cards))
    blocked_by = [
        by_id[dep]
        for dep in card.depends_on_job_card_ids
        if dep in by_id and by_id[dep].status is not JobCardStatus.COMPLETED
    ]
    dangling = any(dep not in by_id for dep in card.depends_on_job_card_ids)
    return DependencyCheck(
        can_start=card.status is JobCardStatus.READY and not blocked_by and not dangling,
        blocked_by=blocked_by,
        blocks=find_dependents(card.id, job_cards),
    )


def get_execution_order(job_cards: Sequence[JobCard]) -> List[List[JobCard]]:
    """Group cards into levels; every card's dependencies sit in earlier levels.

    Unknown dependency ids are ignored. Cards on a cycle never become
    eligible and are left out.
    """

    known = {card.id for card in job_cards}
    processed: Set[str] = set()
    levels: List[List[JobCard]] = []
    while len(processed) < len(job_cards):
        level = [
            card
            for card in job_cards
            if card.id not in processed
            and all(
                dep in processed or dep not in known
                for dep in card.depends_on_job_card_ids
            )
        ]
        if not level:
            break
        levels.append(level)
        processed.update(card.id for card in level)
    return levels


def calculate_critical_path(job_cards: Sequence[JobCard]) -> CriticalPath:
    """Longest chain of estimated time through the dependency graph."""

    best: Dict[str, Tuple[float, Optional[str]]] = {}
    for level in get_execution_order(job_cards):
        for card in level:
            predecessor: Optional[str] = None
            longest = 0.0
            for dep in card.depends_on_job_card_ids:
                if dep in best and best[dep][0] > longest:
                    longest, predecessor = best[dep][0], dep
            best[card.id] = (longest + card.estimated_total_time_min, predecessor)
    if not best:
        return CriticalPath(path=[], total_time_min=0.0)

    by_id = index_by_id(list(job_cards))
    end_id = max(best, key=lambda card_id: best[card_id][0])
    total = best[end_id][0]
    path: List[JobCard] = []
    cursor: Optional[str] = end_id
    while cursor is not None:
        path.append(by_id[cursor])
        cursor = best[cursor][1]
    path.reverse()
    return CriticalPath(path=path, total_time_min=total)


def detect_circular_dependency(
    job_card_id: str, depends_on: Iterable[str], job_cards: Sequence[JobCard]
) -> bool:
    """Whether giving ``job_card_id`` the dependencies ``depends_on`` closes a cycle."""

    edges = {card.id: tuple(card.depends_on_job_card_ids) for card in job_cards}
    edges[job_card_id] = tuple(depends_on)
    visiting: Set[str] = set()
    done: Set[str] = set()

    def has_cycle(node: str) -> bool:
        if node in visiting:
            return True
        if node in done:
            return False
        visiting.add(node)
        for dep in edges.get(node, ()):
            if has_cycle(dep):
                return True
        visiting.discard(node)
        done.add(node)
        return False

    return has_cycle(job_card_id)


def update_dependencies(
    job_cards: Sequence[JobCard],
    job_card_id: str,
    depends_on: Iterable[str],
    *,
    actor: str = "system",
) -> List[JobCard]:
    """Re-point a card's dependencies, e.g. away from a cancelled card."""

    card = _find(job_cards, job_card_id)
    if card.has_started:
        raise InvalidTransitionError(
            card.id, card.status, "dependencies can only change before work starts"
        )
    new_deps = tuple(dict.fromkeys(depends_on))
    known = {other.id for other in job_cards}
    unknown = tuple(dep for dep in new_deps if dep not in known)
    if unknown:
        raise DanglingDependencyError({card.id: unknown})
    if detect_circular_dependency(card.id, new_deps, job_cards):
        raise CircularDependencyError(
            f"Re-pointing {card.id!r} to {', '.join(new_deps)} would create a cycle"
        )
    updated = replace(
        card,
        depends_on_job_card_ids=new_deps,
        updated_at=utcnow(),
        updated_by=actor,
    )
    result = [updated if other.id == card.id else other for other in job_cards]
    return refresh_statuses(result)


__all__ = [
    "resolve_status",
    "refresh_statuses",
    "DependencyCheck",
    "CriticalPath",
    "find_dependents",
    "check_dependencies",
    "get_execution_order",
    "calculate_critical_path",
    "detect_circular_dependency",
    "update_dependencies",
]
