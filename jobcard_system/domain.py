"""Core data structures for job card generation and dependency scheduling."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import List, Optional, Sequence, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobCardStatus(str, Enum):
    """Lifecycle states of a job card."""

    PENDING_MATERIAL = "PendingMaterial"
    BLOCKED = "Blocked"
    READY = "Ready"
    IN_PROGRESS = "InProgress"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobCardStatus.COMPLETED, JobCardStatus.CANCELLED)


# States whose value is derived from dependencies and material availability
# rather than from shop-floor events.
GATING_STATUSES = frozenset(
    {JobCardStatus.BLOCKED, JobCardStatus.READY, JobCardStatus.PENDING_MATERIAL}
)


class EventType(str, Enum):
    """External production events consumed by the resolver."""

    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MATERIAL_UPDATE = "material_update"
    RECORD_PRODUCTION = "record_production"


class SchedulingStrategy(str, Enum):
    ASAP = "ASAP"
    JIT = "JIT"
    MANUAL = "MANUAL"


class Priority(IntEnum):
    """Order priority, inherited by every job card of the order."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    URGENT = 4

    @property
    def label(self) -> str:
        return {
            Priority.LOW: "Low",
            Priority.MEDIUM: "Medium",
            Priority.HIGH: "High",
            Priority.URGENT: "Urgent",
        }[self]


@dataclass(slots=True)
class Process:
    """Process master data used to derive job card defaults."""

    id: str
    name: str
    code: str = ""
    default_machine_id: Optional[str] = None
    default_setup_time_hours: Optional[float] = None
    default_cycle_time_per_piece_hours: Optional[float] = None


@dataclass(slots=True)
class Machine:
    """A machine resource that can execute one or more processes."""

    id: str
    name: str
    process_ids: Tuple[str, ...] = tuple()
    is_active: bool = True
    location: str = ""


@dataclass(slots=True)
class ProcessTemplateStep:
    """A single step of a process template."""

    process_id: str
    process_name: str
    step_no: int
    is_mandatory: bool = True
    can_be_parallel: bool = False
    id: str = ""


@dataclass(slots=True)
class ProcessTemplate:
    """Ordered, reusable definition of a manufacturing flow.

    Step numbers are contiguous starting at 1 in list order. The editing
    helpers renumber after every change so relative order is preserved.
    """

    id: str
    name: str
    steps: List[ProcessTemplateStep] = field(default_factory=list)
    description: str = ""

    def __post_init__(self) -> None:
        for expected, step in enumerate(self.steps, start=1):
            if step.step_no != expected:
                raise ValueError(
                    f"Template {self.id!r}: step numbers must be contiguous from 1, "
                    f"found {step.step_no} at position {expected}"
                )

    def _renumber(self) -> None:
        for position, step in enumerate(self.steps, start=1):
            step.step_no = position

    def get_step(self, step_no: int) -> ProcessTemplateStep:
        if step_no < 1 or step_no > len(self.steps):
            raise ValueError(f"Template {self.id!r} has no step {step_no}")
        return self.steps[step_no - 1]

    def add_step(
        self,
        process_id: str,
        process_name: str,
        *,
        is_mandatory: bool = True,
        can_be_parallel: bool = False,
    ) -> ProcessTemplateStep:
        step = ProcessTemplateStep(
            process_id=process_id,
            process_name=process_name,
            step_no=len(self.steps) + 1,
            is_mandatory=is_mandatory,
            can_be_parallel=can_be_parallel,
        )
        self.steps.append(step)
        return step

    def remove_step(self, step_no: int) -> ProcessTemplateStep:
        step = self.get_step(step_no)
        self.steps.remove(step)
        self._renumber()
        return step

    def move_step(self, step_no: int, new_position: int) -> None:
        if new_position < 1 or new_position > len(self.steps):
            raise ValueError(f"Position {new_position} is outside the template")
        step = self.get_step(step_no)
        self.steps.remove(step)
        self.steps.insert(new_position - 1, step)
        self._renumber()

    def mandatory_step_numbers(self) -> List[int]:
        return [step.step_no for step in self.steps if step.is_mandatory]

    def default_selection(self) -> List[int]:
        """Selection a caller should start from when the template is loaded."""

        return self.mandatory_step_numbers()


@dataclass(slots=True)
class Order:
    """Customer order, read-only input to job card generation."""

    id: str
    order_no: str
    quantity: int
    priority: Priority = Priority.MEDIUM
    product_id: str = ""
    customer_id: str = ""
    customer_name: str = ""
    product_name: str = ""

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("Order quantity must be at least 1")


@dataclass(slots=True, frozen=True)
class MaterialShortfall:
    """Deficit between required and available material for a job card."""

    material_id: str
    required: float
    available: float

    @property
    def shortfall(self) -> float:
        return max(0.0, self.required - self.available)


@dataclass(slots=True)
class GenerationConfig:
    """Options chosen by the planner when generating job cards."""

    selected_steps: Sequence[int]
    auto_assign_machines: bool = True
    scheduling_strategy: SchedulingStrategy = SchedulingStrategy.ASAP


@dataclass(slots=True)
class JobCard:
    """Unit of schedulable work for one process step on one order."""

    id: str
    job_card_no: str
    order_id: str
    order_no: str
    process_id: str
    process_name: str
    step_no: int
    sequence_no: int
    quantity: int
    estimated_setup_time_min: float
    estimated_cycle_time_min: float
    estimated_total_time_min: float
    status: JobCardStatus
    priority: Priority
    process_code: str = ""
    process_template_id: Optional[str] = None
    depends_on_job_card_ids: Tuple[str, ...] = tuple()
    blocked_by: Tuple[str, ...] = tuple()
    completed_qty: int = 0
    rejected_qty: int = 0
    in_progress_qty: int = 0
    actual_setup_time_min: Optional[float] = None
    actual_cycle_time_min: Optional[float] = None
    actual_total_time_min: Optional[float] = None
    scheduling_strategy: SchedulingStrategy = SchedulingStrategy.ASAP
    assigned_machine_id: Optional[str] = None
    assigned_machine_name: Optional[str] = None
    material_shortfalls: Tuple[MaterialShortfall, ...] = tuple()
    customer_name: str = ""
    product_name: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    updated_by: str = "system"

    @property
    def has_material_shortfall(self) -> bool:
        return any(item.shortfall > 0 for item in self.material_shortfalls)

    @property
    def accounted_qty(self) -> int:
        return self.completed_qty + self.rejected_qty + self.in_progress_qty

    @property
    def remaining_qty(self) -> int:
        return self.quantity - self.accounted_qty

    @property
    def has_started(self) -> bool:
        """True once production has been recorded, whatever the current status.

        A card demoted to ``PendingMaterial`` mid-run is gated again but keeps
        its recorded quantities.
        """
        if self.status not in GATING_STATUSES:
            return True
        return self.accounted_qty > 0 or any(
            value is not None
            for value in (
                self.actual_setup_time_min,
                self.actual_cycle_time_min,
                self.actual_total_time_min,
            )
        )


@dataclass(slots=True)
class ProductionEvent:
    """A shop-floor event applied to one job card."""

    event_type: EventType
    job_card_id: str
    shortfalls: Tuple[MaterialShortfall, ...] = tuple()
    completed_qty: int = 0
    rejected_qty: int = 0
    in_progress_qty: Optional[int] = None
    actor: str = "system"


__all__ = [
    "JobCardStatus",
    "GATING_STATUSES",
    "EventType",
    "SchedulingStrategy",
    "Priority",
    "Process",
    "Machine",
    "ProcessTemplateStep",
    "ProcessTemplate",
    "Order",
    "MaterialShortfall",
    "GenerationConfig",
    "JobCard",
    "ProductionEvent",
    "utcnow",
]
