from __future__ import annotations

from dataclasses import replace

import pytest

from jobcard_system.domain import (
    EventType,
    GenerationConfig,
    JobCardStatus,
    MaterialShortfall,
    ProductionEvent,
)
from jobcard_system.errors import (
    CircularDependencyError,
    DanglingDependencyError,
    InvalidTransitionError,
    JobCardNotFoundError,
)
from jobcard_system.generator import generate_job_cards
from jobcard_system.resolver import (
    calculate_critical_path,
    check_dependencies,
    detect_circular_dependency,
    find_dependents,
    get_execution_order,
    refresh_statuses,
    resolve_status,
    update_dependencies,
)

from helpers import by_id, make_template, statuses


@pytest.fixture
def chain(order, sequential_template, processes, machines):
    return generate_job_cards(
        order,
        sequential_template,
        GenerationConfig(selected_steps=[1, 2, 3, 4]),
        processes=processes,
        machines=machines,
    )


def event(kind, card_id, **kwargs):
    return ProductionEvent(event_type=kind, job_card_id=card_id, **kwargs)


def finish(cards, card_id):
    """Walk a Ready card through start, full production and completion."""
    cards = resolve_status(cards, event(EventType.START, card_id))
    quantity = by_id(cards)[card_id].quantity
    cards = resolve_status(
        cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=quantity)
    )
    return resolve_status(cards, event(EventType.COMPLETE, card_id))


def test_order_128_end_to_end(chain):
    jc1, jc2, jc3, jc4 = chain
    assert [c.depends_on_job_card_ids for c in chain] == [(), (jc1.id,), (jc2.id,), (jc3.id,)]
    assert statuses(chain) == ["Ready", "Blocked", "Blocked", "Blocked"]
    assert jc1.assigned_machine_id == "saw-1"

    cards = finish(chain, jc1.id)

    assert statuses(cards) == ["Completed", "Ready", "Blocked", "Blocked"]
    assert cards[1].blocked_by == ()
    assert cards[2].blocked_by == (jc2.id,)


def test_resolve_does_not_mutate_input(chain):
    before = statuses(chain)
    resolve_status(chain, event(EventType.START, chain[0].id))
    assert statuses(chain) == before


def test_repeated_complete_is_idempotent(chain):
    cards = finish(chain, chain[0].id)
    again = resolve_status(cards, event(EventType.COMPLETE, chain[0].id))
    assert statuses(again) == statuses(cards)
    assert refresh_statuses(again) == again


def test_material_shortfall_overrides_readiness(chain):
    cards = finish(chain, chain[0].id)
    shortfall = MaterialShortfall("bar-50", required=45.0, available=20.0)
    cards = resolve_status(
        cards, event(EventType.MATERIAL_UPDATE, chain[1].id, shortfalls=(shortfall,))
    )
    assert cards[1].status is JobCardStatus.PENDING_MATERIAL
    assert cards[1].has_material_shortfall

    # still pending after an unrelated refresh
    assert refresh_statuses(cards)[1].status is JobCardStatus.PENDING_MATERIAL


def test_clearing_shortfall_restores_dependency_status(chain):
    shortfall = MaterialShortfall("bar-50", required=45.0, available=20.0)
    cards = resolve_status(
        chain, event(EventType.MATERIAL_UPDATE, chain[1].id, shortfalls=(shortfall,))
    )
    assert cards[1].status is JobCardStatus.PENDING_MATERIAL

    cards = resolve_status(cards, event(EventType.MATERIAL_UPDATE, chain[1].id))
    assert cards[1].status is JobCardStatus.BLOCKED

    cards = finish(cards, chain[0].id)
    assert cards[1].status is JobCardStatus.READY


def test_shortfall_with_enough_stock_does_not_block(chain):
    covered = MaterialShortfall("bar-50", required=10.0, available=40.0)
    cards = resolve_status(
        chain, event(EventType.MATERIAL_UPDATE, chain[0].id, shortfalls=(covered,))
    )
    assert cards[0].status is JobCardStatus.READY
    assert cards[0].material_shortfalls == (covered,)


def test_pending_material_card_becomes_ready_once_material_arrives(chain):
    shortfall = MaterialShortfall("bar-50", required=45.0, available=0.0)
    cards = resolve_status(
        chain, event(EventType.MATERIAL_UPDATE, chain[0].id, shortfalls=(shortfall,))
    )
    with pytest.raises(InvalidTransitionError):
        resolve_status(cards, event(EventType.START, chain[0].id))
    cards = resolve_status(cards, event(EventType.MATERIAL_UPDATE, chain[0].id))
    assert cards[0].status is JobCardStatus.READY


def test_start_pause_resume(chain):
    card_id = chain[0].id
    cards = resolve_status(chain, event(EventType.START, card_id))
    assert cards[0].status is JobCardStatus.IN_PROGRESS
    cards = resolve_status(cards, event(EventType.PAUSE, card_id, actor="op-7"))
    assert cards[0].status is JobCardStatus.PAUSED
    assert cards[0].updated_by == "op-7"
    cards = resolve_status(cards, event(EventType.RESUME, card_id))
    assert cards[0].status is JobCardStatus.IN_PROGRESS


@pytest.mark.parametrize(
    "kind", [EventType.COMPLETE, EventType.PAUSE, EventType.RESUME]
)
def test_illegal_transitions_from_ready(chain, kind):
    with pytest.raises(InvalidTransitionError):
        resolve_status(chain, event(kind, chain[0].id))
    assert chain[0].status is JobCardStatus.READY


def test_blocked_card_cannot_start(chain):
    with pytest.raises(InvalidTransitionError):
        resolve_status(chain, event(EventType.START, chain[1].id))


def test_complete_requires_full_quantity(chain):
    card_id = chain[0].id
    cards = resolve_status(chain, event(EventType.START, card_id))
    cards = resolve_status(
        cards,
        event(EventType.RECORD_PRODUCTION, card_id, completed_qty=8, rejected_qty=1),
    )
    with pytest.raises(InvalidTransitionError, match="quantity mismatch"):
        resolve_status(cards, event(EventType.COMPLETE, card_id))
    assert cards[0].status is JobCardStatus.IN_PROGRESS
    assert cards[0].completed_qty == 8


def test_recorded_quantities_cannot_exceed_card_quantity(chain):
    card_id = chain[0].id
    cards = resolve_status(chain, event(EventType.START, card_id))
    cards = resolve_status(
        cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=6, in_progress_qty=3)
    )
    with pytest.raises(InvalidTransitionError):
        resolve_status(
            cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=2, rejected_qty=1)
        )
    with pytest.raises(InvalidTransitionError):
        resolve_status(cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=-7))
    assert cards[0].accounted_qty == 9
    assert cards[0].remaining_qty == 1


def test_production_cannot_be_recorded_before_start(chain):
    with pytest.raises(InvalidTransitionError):
        resolve_status(
            chain, event(EventType.RECORD_PRODUCTION, chain[0].id, completed_qty=1)
        )


def test_cancelled_dependency_keeps_dependents_blocked(chain):
    cards = resolve_status(chain, event(EventType.CANCEL, chain[0].id))
    assert cards[0].status is JobCardStatus.CANCELLED
    assert cards[1].status is JobCardStatus.BLOCKED
    assert refresh_statuses(cards)[1].status is JobCardStatus.BLOCKED
    # cancelling twice changes nothing
    assert statuses(resolve_status(cards, event(EventType.CANCEL, chain[0].id))) == statuses(
        cards
    )


def test_completed_card_cannot_be_cancelled(chain):
    cards = finish(chain, chain[0].id)
    with pytest.raises(InvalidTransitionError):
        resolve_status(cards, event(EventType.CANCEL, chain[0].id))


def test_material_update_rejected_on_closed_card(chain):
    cards = finish(chain, chain[0].id)
    shortfall = MaterialShortfall("bar-50", required=1.0, available=0.0)
    with pytest.raises(InvalidTransitionError):
        resolve_status(
            cards, event(EventType.MATERIAL_UPDATE, chain[0].id, shortfalls=(shortfall,))
        )


def test_unknown_job_card(chain):
    with pytest.raises(JobCardNotFoundError):
        resolve_status(chain, event(EventType.START, "jc-missing"))


def test_dangling_dependency_leaves_card_blocked(chain):
    broken = replace(chain[1], depends_on_job_card_ids=(chain[0].id, "jc-ghost"))
    cards = [chain[0], broken, chain[2], chain[3]]
    with pytest.raises(DanglingDependencyError) as excinfo:
        resolve_status(cards, event(EventType.START, chain[0].id))
    error = excinfo.value
    assert error.job_card_ids == (broken.id,)
    assert error.dangling[broken.id] == ("jc-ghost",)
    assert by_id(error.job_cards)[broken.id].status is JobCardStatus.BLOCKED
    assert by_id(error.job_cards)[chain[0].id].status is JobCardStatus.IN_PROGRESS


def test_dependents_are_found_by_id_not_position(order, processes):
    template = make_template(
        [("cutting", True, False), ("turning", True, False), ("grinding", True, False)]
    )
    c1, c2, c3 = generate_job_cards(
        order, template, GenerationConfig(selected_steps=[1, 2, 3]), processes=processes
    )
    # c3 waits for both c1 and c2; list order scrambled
    fan_in = replace(c3, depends_on_job_card_ids=(c1.id, c2.id))
    cards = [fan_in, c2, c1]

    cards = finish(cards, c1.id)
    assert by_id(cards)[c2.id].status is JobCardStatus.READY
    assert by_id(cards)[c3.id].status is JobCardStatus.BLOCKED
    assert by_id(cards)[c3.id].blocked_by == (c2.id,)

    cards = finish(cards, c2.id)
    assert by_id(cards)[c3.id].status is JobCardStatus.READY
    assert [card.id for card in cards] == [c3.id, c2.id, c1.id]


def test_check_dependencies(chain):
    result = check_dependencies(chain[1].id, chain)
    assert not result.can_start
    assert [card.id for card in result.blocked_by] == [chain[0].id]
    assert [card.id for card in result.blocks] == [chain[2].id]

    cards = finish(chain, chain[0].id)
    result = check_dependencies(chain[1].id, cards)
    assert result.can_start
    assert result.blocked_by == []
    assert [card.id for card in find_dependents(chain[0].id, cards)] == [chain[1].id]


def test_execution_levels_and_critical_path(order, processes):
    template = make_template(
        [
            ("cutting", True, False),
            ("turning", True, False),
            ("painting", True, True),
            ("assembly", True, False),
        ]
    )
    c1, c2, c3, c4 = generate_job_cards(
        order, template, GenerationConfig(selected_steps=[1, 2, 3, 4]), processes=processes
    )
    levels = get_execution_order([c1, c2, c3, c4])
    assert [[card.id for card in level] for level in levels] == [
        [c1.id, c3.id],
        [c2.id, c4.id],
    ]

    critical = calculate_critical_path([c1, c2, c3, c4])
    assert [card.id for card in critical.path] == [c1.id, c2.id]
    assert critical.total_time_min == 75 + 470


def test_update_dependencies_repoints_around_cancelled_card(chain):
    cards = resolve_status(chain, event(EventType.CANCEL, chain[1].id))
    cards = finish(cards, chain[0].id)
    assert cards[2].status is JobCardStatus.BLOCKED

    cards = update_dependencies(cards, chain[2].id, [chain[0].id], actor="planner")
    assert cards[2].depends_on_job_card_ids == (chain[0].id,)
    assert cards[2].status is JobCardStatus.READY
    assert cards[2].updated_by == "planner"


def test_update_dependencies_rejects_cycles_and_unknown_ids(chain):
    assert detect_circular_dependency(chain[0].id, [chain[3].id], chain)
    assert not detect_circular_dependency(chain[3].id, [chain[0].id], chain)
    with pytest.raises(CircularDependencyError):
        update_dependencies(chain, chain[0].id, [chain[3].id])
    with pytest.raises(DanglingDependencyError):
        update_dependencies(chain, chain[1].id, ["jc-ghost"])


def test_update_dependencies_only_before_work_starts(chain):
    cards = resolve_status(chain, event(EventType.START, chain[0].id))
    with pytest.raises(InvalidTransitionError):
        update_dependencies(cards, chain[0].id, [])


@pytest.mark.parametrize("pause_first", [False, True])
def test_shortfall_mid_run_demotes_card_and_keeps_quantities(chain, pause_first):
    card_id = chain[0].id
    cards = resolve_status(chain, event(EventType.START, card_id))
    cards = resolve_status(
        cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=8)
    )
    if pause_first:
        cards = resolve_status(cards, event(EventType.PAUSE, card_id))

    shortfall = MaterialShortfall("bar-50", required=5.0, available=0.0)
    cards = resolve_status(
        cards, event(EventType.MATERIAL_UPDATE, card_id, shortfalls=(shortfall,))
    )
    assert cards[0].status is JobCardStatus.PENDING_MATERIAL
    assert cards[0].completed_qty == 8
    assert cards[0].has_started
    assert statuses(cards)[1:] == ["Blocked", "Blocked", "Blocked"]

    cards = resolve_status(cards, event(EventType.MATERIAL_UPDATE, card_id))
    assert cards[0].status is JobCardStatus.READY
    assert cards[0].completed_qty == 8

    # work has to be started again before the rest can be booked
    with pytest.raises(InvalidTransitionError):
        resolve_status(cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=2))
    cards = resolve_status(cards, event(EventType.START, card_id))
    cards = resolve_status(
        cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=2)
    )
    cards = resolve_status(cards, event(EventType.COMPLETE, card_id))
    assert statuses(cards) == ["Completed", "Ready", "Blocked", "Blocked"]


def test_update_dependencies_refused_for_partly_produced_card(chain):
    card_id = chain[0].id
    cards = resolve_status(chain, event(EventType.START, card_id))
    cards = resolve_status(
        cards, event(EventType.RECORD_PRODUCTION, card_id, completed_qty=4)
    )
    shortfall = MaterialShortfall("bar-50", required=5.0, available=0.0)
    cards = resolve_status(
        cards, event(EventType.MATERIAL_UPDATE, card_id, shortfalls=(shortfall,))
    )
    assert cards[0].status is JobCardStatus.PENDING_MATERIAL

    with pytest.raises(InvalidTransitionError):
        update_dependencies(cards, card_id, [])
