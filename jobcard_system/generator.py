"""Job card generation from an order and a process template."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .domain import (
    GenerationConfig,
    JobCard,
    JobCardStatus,
    Machine,
    Order,
    Process,
    ProcessTemplate,
    ProcessTemplateStep,
    utcnow,
)
from .errors import EmptySelectionError, MissingProcessError
from .repository import CatalogView, InMemoryRepository, RecordNotFoundError
from .selector import select_steps

Catalog = Union[InMemoryRepository, CatalogView]


def job_card_id(order: Order, position: int) -> str:
    return f"jc-{order.id}-{position}"


def job_card_no(order: Order, position: int) -> str:
    return f"JC-{order.order_no}-{position}"


def _hours_to_minutes(hours: Optional[float]) -> float:
    if hours is None:
        return 0.0
    return round(max(hours, 0.0) * 60.0, 2)


def estimate_total_time(setup_min: float, cycle_min: float, quantity: int) -> float:
    return setup_min + cycle_min * quantity


def _resolve_processes(
    steps: Sequence[ProcessTemplateStep], processes: Catalog
) -> Dict[str, Process]:
    resolved: Dict[str, Process] = {}
    for step in steps:
        if step.process_id in resolved:
            continue
        try:
            resolved[step.process_id] = processes.get(step.process_id)
        except RecordNotFoundError as exc:
            raise MissingProcessError(step.process_id, step.step_no) from exc
    return resolved


def _default_machine(process: Process, machines: Optional[Catalog]) -> Optional[Machine]:
    if machines is None or not process.default_machine_id:
        return None
    machine = machines.find(process.default_machine_id)
    if machine is None or not machine.is_active:
        return None
    return machine


def generate_job_cards(
    order: Order,
    template: ProcessTemplate,
    config: GenerationConfig,
    *,
    processes: Catalog,
    machines: Optional[Catalog] = None,
) -> List[JobCard]:
    """Build one job card per selected template step.

    Every selected step's process is resolved before any card is built, so a
    missing catalog entry aborts the whole run. Each card depends on the card
    generated immediately before it unless its step may run in parallel.
    """

    steps = select_steps(template, config.selected_steps)
    if not steps:
        raise EmptySelectionError(
            f"No steps of template {template.id!r} selected for order {order.order_no}"
        )
    resolved = _resolve_processes(steps, processes)
    created_at = utcnow()

    job_cards: List[JobCard] = []
    for position, step in enumerate(steps, start=1):
        process = resolved[step.process_id]
        depends_on: Tuple[str, ...] = tuple()
        if job_cards and not step.can_be_parallel:
            depends_on = (job_cards[-1].id,)

        setup_min = _hours_to_minutes(process.default_setup_time_hours)
        cycle_min = _hours_to_minutes(process.default_cycle_time_per_piece_hours)
        machine = (
            _default_machine(process, machines) if config.auto_assign_machines else None
        )
        job_cards.append(
            JobCard(
                id=job_card_id(order, position),
                job_card_no=job_card_no(order, position),
                order_id=order.id,
                order_no=order.order_no,
                process_id=process.id,
                process_name=step.process_name or process.name,
                process_code=process.code,
                step_no=step.step_no,
                sequence_no=position,
                process_template_id=template.id,
                depends_on_job_card_ids=depends_on,
                blocked_by=depends_on,
                quantity=order.quantity,
                estimated_setup_time_min=setup_min,
                estimated_cycle_time_min=cycle_min,
                estimated_total_time_min=estimate_total_time(
                    setup_min, cycle_min, order.quantity
                ),
                status=JobCardStatus.BLOCKED if depends_on else JobCardStatus.READY,
                priority=order.priority,
                scheduling_strategy=config.scheduling_strategy,
                assigned_machine_id=machine.id if machine else None,
                assigned_machine_name=machine.name if machine else None,
                customer_name=order.customer_name,
                product_name=order.product_name,
                created_at=created_at,
                updated_at=created_at,
            )
        )
    return job_cards


# ----------------------------------------------------------------------
# Summary helpers
# ----------------------------------------------------------------------
@dataclass(slots=True)
class JobCardSummary:
    """Aggregate figures over a set of job cards."""

    total_job_cards: int
    ready_to_start: int
    blocked: int
    pending_material: int
    in_progress: int
    completed: int
    total_estimated_time_min: float
    expected_completion: datetime
    counts_by_status: Mapping[JobCardStatus, int] = field(default_factory=dict)


def calculate_total_estimated_time(job_cards: Sequence[JobCard]) -> float:
    return sum(card.estimated_total_time_min for card in job_cards)


def count_by_status(job_cards: Sequence[JobCard]) -> Dict[JobCardStatus, int]:
    counts = {status: 0 for status in JobCardStatus}
    for card in job_cards:
        counts[card.status] += 1
    return counts


def calculate_expected_completion(
    job_cards: Sequence[JobCard], start: Optional[datetime] = None
) -> datetime:
    """Start plus the summed estimates, i.e. the fully sequential upper bound."""

    start = start or utcnow()
    return start + timedelta(minutes=calculate_total_estimated_time(job_cards))


def get_job_card_summary(
    job_cards: Sequence[JobCard], start: Optional[datetime] = None
) -> JobCardSummary:
    counts = count_by_status(job_cards)
    return JobCardSummary(
        total_job_cards=len(job_cards),
        ready_to_start=counts[JobCardStatus.READY],
        blocked=counts[JobCardStatus.BLOCKED],
        pending_material=counts[JobCardStatus.PENDING_MATERIAL],
        in_progress=counts[JobCardStatus.IN_PROGRESS],
        completed=counts[JobCardStatus.COMPLETED],
        total_estimated_time_min=calculate_total_estimated_time(job_cards),
        expected_completion=calculate_expected_completion(job_cards, start),
        counts_by_status=counts,
    )


__all__ = [
    "generate_job_cards",
    "job_card_id",
    "job_card_no",
    "estimate_total_time",
    "JobCardSummary",
    "calculate_total_estimated_time",
    "count_by_status",
    "calculate_expected_completion",
    "get_job_card_summary",
]
