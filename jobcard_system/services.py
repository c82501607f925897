"""Service layer that exposes job card use-cases to clients."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from uuid import uuid4

from .domain import (
    EventType,
    GenerationConfig,
    JobCard,
    Machine,
    Order,
    Priority,
    Process,
    ProcessTemplate,
    ProductionEvent,
)
from .errors import (
    DanglingDependencyError,
    InvalidTransitionError,
    JobCardError,
    JobCardNotFoundError,
)
from .generator import JobCardSummary, generate_job_cards, get_job_card_summary
from .materials import InventoryItem, MaterialAvailability, MaterialRequirement
from .repository import DuplicateRecordError, InMemoryRepository, RecordNotFoundError
from .resolver import (
    CriticalPath,
    calculate_critical_path,
    get_execution_order,
    resolve_status,
    update_dependencies,
)

logger = logging.getLogger(__name__)

# (process_id, is_mandatory, can_be_parallel)
StepDefinition = Tuple[str, bool, bool]


@dataclass(slots=True)
class _OrderLock:
    # Dropped from the registry once no caller holds or waits on it.
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class JobCardService:
    """Facade over the catalogs and the per-order job card graphs."""

    def __init__(
        self,
        process_repo: Optional[InMemoryRepository[Process]] = None,
        machine_repo: Optional[InMemoryRepository[Machine]] = None,
        template_repo: Optional[InMemoryRepository[ProcessTemplate]] = None,
        order_repo: Optional[InMemoryRepository[Order]] = None,
        availability: Optional[MaterialAvailability] = None,
        *,
        default_actor: str = "system",
    ) -> None:
        self.processes = process_repo if process_repo is not None else InMemoryRepository()
        self.machines = machine_repo if machine_repo is not None else InMemoryRepository()
        self.templates = template_repo if template_repo is not None else InMemoryRepository()
        self.orders = order_repo if order_repo is not None else InMemoryRepository()
        self.availability = availability if availability is not None else MaterialAvailability()
        self.job_cards: InMemoryRepository[List[JobCard]] = InMemoryRepository()
        self.default_actor = default_actor
        self._locks: Dict[str, _OrderLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _order_lock(self, order_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(order_id, _OrderLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[order_id]

    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    def register_process(
        self,
        name: str,
        *,
        code: str = "",
        default_machine_id: Optional[str] = None,
        default_setup_time_hours: Optional[float] = None,
        default_cycle_time_per_piece_hours: Optional[float] = None,
        process_id: Optional[str] = None,
    ) -> Process:
        process = Process(
            id=process_id or str(uuid4()),
            name=name,
            code=code,
            default_machine_id=default_machine_id,
            default_setup_time_hours=default_setup_time_hours,
            default_cycle_time_per_piece_hours=default_cycle_time_per_piece_hours,
        )
        self.processes.add(process.id, process)
        return process

    def register_machine(
        self,
        name: str,
        process_ids: Sequence[str],
        *,
        is_active: bool = True,
        location: str = "",
        machine_id: Optional[str] = None,
    ) -> Machine:
        if not process_ids:
            raise ValueError("A machine must support at least one process")
        for process_id in process_ids:
            if process_id not in self.processes:
                raise RecordNotFoundError(f"Process {process_id!r} does not exist")
        machine = Machine(
            id=machine_id or str(uuid4()),
            name=name,
            process_ids=tuple(dict.fromkeys(process_ids)),
            is_active=is_active,
            location=location,
        )
        self.machines.add(machine.id, machine)
        return machine

    def set_default_machine(self, process_id: str, machine_id: Optional[str]) -> Process:
        process = self.processes.get(process_id)
        if machine_id is not None and machine_id not in self.machines:
            raise RecordNotFoundError(f"Machine {machine_id!r} does not exist")
        process.default_machine_id = machine_id
        self.processes.upsert(process.id, process)
        return process

    def register_template(
        self,
        name: str,
        steps: Sequence[StepDefinition],
        *,
        description: str = "",
        template_id: Optional[str] = None,
    ) -> ProcessTemplate:
        if not steps:
            raise ValueError("A process template must contain at least one step")
        template = ProcessTemplate(
            id=template_id or str(uuid4()), name=name, description=description
        )
        for process_id, is_mandatory, can_be_parallel in steps:
            process = self.processes.get(process_id)
            template.add_step(
                process.id,
                process.name,
                is_mandatory=is_mandatory,
                can_be_parallel=can_be_parallel,
            )
        self.templates.add(template.id, template)
        return template

    def register_order(
        self,
        order_no: str,
        quantity: int,
        *,
        priority: Priority = Priority.MEDIUM,
        product_id: str = "",
        customer_id: str = "",
        customer_name: str = "",
        product_name: str = "",
        order_id: Optional[str] = None,
    ) -> Order:
        order = Order(
            id=order_id or str(uuid4()),
            order_no=order_no,
            quantity=quantity,
            priority=priority,
            product_id=product_id,
            customer_id=customer_id,
            customer_name=customer_name,
            product_name=product_name,
        )
        self.orders.add(order.id, order)
        return order

    # ------------------------------------------------------------------
    # Material management
    # ------------------------------------------------------------------
    def register_material_stock(
        self,
        name: str,
        unit_of_measure: str,
        *,
        quantity_on_hand: float,
        reserved_quantity: float = 0.0,
        item_id: Optional[str] = None,
    ) -> InventoryItem:
        item = InventoryItem(
            id=item_id or str(uuid4()),
            name=name,
            unit_of_measure=unit_of_measure,
            quantity_on_hand=quantity_on_hand,
            reserved_quantity=reserved_quantity,
        )
        self.availability.inventory.add(item.id, item)
        return item

    def update_material_stock(self, item_id: str, quantity_on_hand: float) -> InventoryItem:
        item = self.availability.inventory.get(item_id)
        item.quantity_on_hand = quantity_on_hand
        self.availability.inventory.upsert(item.id, item)
        return item

    def add_material_requirement(
        self, process_id: str, item_id: str, quantity_per_piece: float
    ) -> MaterialRequirement:
        if process_id not in self.processes:
            raise RecordNotFoundError(f"Process {process_id!r} does not exist")
        return self.availability.add_requirement(process_id, item_id, quantity_per_piece)

    # ------------------------------------------------------------------
    # Job card generation
    # ------------------------------------------------------------------
    def preview_for_order(
        self, order_id: str, template_id: str, config: GenerationConfig
    ) -> List[JobCard]:
        """Generate job cards without storing them."""

        order = self.orders.get(order_id)
        template = self.templates.get(template_id)
        try:
            return generate_job_cards(
                order,
                template,
                config,
                processes=self.processes.read_only(),
                machines=self.machines.read_only(),
            )
        except JobCardError as exc:
            logger.warning("Job card generation for order %s failed: %s", order.order_no, exc)
            raise

    def generate_for_order(
        self,
        order_id: str,
        template_id: str,
        config: GenerationConfig,
        *,
        replace_existing: bool = False,
        check_materials: bool = False,
    ) -> List[JobCard]:
        with self._order_lock(order_id):
            existing = self.job_cards.find(order_id)
            if existing is not None:
                if not replace_existing:
                    raise DuplicateRecordError(
                        f"Job cards for order {order_id!r} already exist"
                    )
                for card in existing:
                    if card.has_started:
                        raise InvalidTransitionError(
                            card.id, card.status, "job cards already in production"
                        )
            job_cards = self.preview_for_order(order_id, template_id, config)
            self.job_cards.upsert(order_id, job_cards)
            logger.info(
                "Generated %d job cards for order %s (%s)",
                len(job_cards),
                job_cards[0].order_no,
                config.scheduling_strategy.value,
            )
        if check_materials:
            return self.check_materials(order_id)
        return job_cards

    def get_job_cards(self, order_id: str) -> List[JobCard]:
        return list(self.job_cards.get(order_id))

    def get_job_card(self, order_id: str, job_card_id: str) -> JobCard:
        for card in self.job_cards.get(order_id):
            if card.id == job_card_id:
                return card
        raise JobCardNotFoundError(f"Job card {job_card_id!r} not found")

    # ------------------------------------------------------------------
    # Production events
    # ------------------------------------------------------------------
    def apply_event(self, order_id: str, event: ProductionEvent) -> List[JobCard]:
        """Apply ``event`` and store the resulting graph.

        Cards pointing at unknown ids are left ``Blocked``; the event itself is
        still applied and stored, so a warning is logged instead of raising.
        """

        with self._order_lock(order_id):
            return self._apply_locked(order_id, self.job_cards.get(order_id), event)

    def _apply_locked(
        self, order_id: str, current: List[JobCard], event: ProductionEvent
    ) -> List[JobCard]:
        try:
            updated = resolve_status(current, event)
        except DanglingDependencyError as exc:
            logger.warning("Order %s: %s", order_id, exc)
            updated = exc.job_cards
        except JobCardError as exc:
            logger.warning(
                "Rejected %s for job card %s: %s",
                event.event_type.value,
                event.job_card_id,
                exc,
            )
            raise
        self.job_cards.upsert(order_id, updated)
        logger.info(
            "Applied %s to job card %s by %s",
            event.event_type.value,
            event.job_card_id,
            event.actor,
        )
        return updated

    def start(self, order_id: str, job_card_id: str) -> List[JobCard]:
        return self.apply_event(order_id, self._event(EventType.START, job_card_id))

    def record_production(
        self,
        order_id: str,
        job_card_id: str,
        *,
        completed_qty: int = 0,
        rejected_qty: int = 0,
        in_progress_qty: Optional[int] = None,
    ) -> List[JobCard]:
        event = self._event(EventType.RECORD_PRODUCTION, job_card_id)
        event.completed_qty = completed_qty
        event.rejected_qty = rejected_qty
        event.in_progress_qty = in_progress_qty
        return self.apply_event(order_id, event)

    def complete(self, order_id: str, job_card_id: str) -> List[JobCard]:
        return self.apply_event(order_id, self._event(EventType.COMPLETE, job_card_id))

    def cancel(self, order_id: str, job_card_id: str) -> List[JobCard]:
        return self.apply_event(order_id, self._event(EventType.CANCEL, job_card_id))

    def _event(self, event_type: EventType, job_card_id: str) -> ProductionEvent:
        return ProductionEvent(
            event_type=event_type, job_card_id=job_card_id, actor=self.default_actor
        )

    def check_materials(self, order_id: str) -> List[JobCard]:
        """Attach current material shortfalls to every open job card."""

        with self._order_lock(order_id):
            cards = self.job_cards.get(order_id)
            for index in range(len(cards)):
                card = cards[index]
                if card.status.is_terminal:
                    continue
                shortfalls = tuple(self.availability.shortfalls_for(card))
                if shortfalls == card.material_shortfalls:
                    continue
                event = self._event(EventType.MATERIAL_UPDATE, card.id)
                event.shortfalls = shortfalls
                cards = self._apply_locked(order_id, cards, event)
        return list(cards)

    def repoint_dependencies(
        self, order_id: str, job_card_id: str, depends_on: Iterable[str]
    ) -> List[JobCard]:
        with self._order_lock(order_id):
            updated = update_dependencies(
                self.job_cards.get(order_id),
                job_card_id,
                depends_on,
                actor=self.default_actor,
            )
            self.job_cards.upsert(order_id, updated)
        logger.info("Re-pointed dependencies of job card %s", job_card_id)
        return updated

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def summary(self, order_id: str, *, start: Optional[datetime] = None) -> JobCardSummary:
        return get_job_card_summary(self.get_job_cards(order_id), start)

    def execution_order(self, order_id: str) -> List[List[JobCard]]:
        return get_execution_order(self.get_job_cards(order_id))

    def critical_path(self, order_id: str) -> CriticalPath:
        return calculate_critical_path(self.get_job_cards(order_id))


__all__ = ["JobCardService", "StepDefinition"]
