from __future__ import annotations

import pytest

from jobcard_system.domain import (
    Machine,
    Order,
    Priority,
    Process,
    ProcessTemplate,
)
from jobcard_system.repository import InMemoryRepository

from helpers import make_template


@pytest.fixture
def processes() -> InMemoryRepository[Process]:
    repo: InMemoryRepository[Process] = InMemoryRepository()
    for process in [
        Process(
            id="cutting",
            name="Cutting",
            default_machine_id="saw-1",
            default_setup_time_hours=0.25,
            default_cycle_time_per_piece_hours=0.1,
        ),
        Process(
            id="turning",
            name="CNC Turning",
            default_machine_id="lathe-1",
            default_setup_time_hours=20 / 60,
            default_cycle_time_per_piece_hours=0.75,
        ),
        Process(
            id="grinding",
            name="Grinding",
            default_machine_id="grinder-1",
            default_setup_time_hours=0.5,
            default_cycle_time_per_piece_hours=0.5,
        ),
        Process(id="assembly", name="Assembly"),
        Process(id="painting", name="Painting", default_setup_time_hours=1.0),
    ]:
        repo.add(process.id, process)
    return repo


@pytest.fixture
def machines() -> InMemoryRepository[Machine]:
    repo: InMemoryRepository[Machine] = InMemoryRepository()
    for machine in [
        Machine(id="saw-1", name="Bandsaw", process_ids=("cutting",)),
        Machine(id="lathe-1", name="CNC Lathe", process_ids=("turning",)),
        Machine(id="grinder-1", name="Grinder", process_ids=("grinding",), is_active=False),
    ]:
        repo.add(machine.id, machine)
    return repo


@pytest.fixture
def order() -> Order:
    return Order(
        id="ord-128",
        order_no="ORD-128",
        quantity=10,
        priority=Priority.HIGH,
        product_id="prd-1",
        customer_id="cust-1",
    )


@pytest.fixture
def sequential_template() -> ProcessTemplate:
    return make_template(
        [
            ("cutting", True, False),
            ("turning", True, False),
            ("grinding", True, False),
            ("assembly", True, False),
        ]
    )
