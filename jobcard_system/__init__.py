"""Job card generation and dependency scheduling for a manufacturing shop.

The package turns a customer order and a process template into a dependency
graph of job cards and keeps each card's readiness in step with production
events reported from the shop floor.
"""

from .domain import (
    EventType,
    GenerationConfig,
    JobCard,
    JobCardStatus,
    Machine,
    MaterialShortfall,
    Order,
    Priority,
    Process,
    ProcessTemplate,
    ProcessTemplateStep,
    ProductionEvent,
    SchedulingStrategy,
)
from .errors import (
    CircularDependencyError,
    ConfigurationError,
    DanglingDependencyError,
    EmptySelectionError,
    InvalidTransitionError,
    JobCardError,
    JobCardNotFoundError,
    MissingProcessError,
)
from .generator import (
    JobCardSummary,
    calculate_total_estimated_time,
    count_by_status,
    generate_job_cards,
    get_job_card_summary,
)
from .resolver import resolve_status
from .selector import select_steps
from .services import JobCardService

__all__ = [
    "EventType",
    "GenerationConfig",
    "JobCard",
    "JobCardStatus",
    "Machine",
    "MaterialShortfall",
    "Order",
    "Priority",
    "Process",
    "ProcessTemplate",
    "ProcessTemplateStep",
    "ProductionEvent",
    "SchedulingStrategy",
    "CircularDependencyError",
    "ConfigurationError",
    "DanglingDependencyError",
    "EmptySelectionError",
    "InvalidTransitionError",
    "JobCardError",
    "JobCardNotFoundError",
    "MissingProcessError",
    "JobCardSummary",
    "calculate_total_estimated_time",
    "count_by_status",
    "generate_job_cards",
    "get_job_card_summary",
    "resolve_status",
    "select_steps",
    "JobCardService",
]
