"""Demonstration script for job card generation and readiness propagation."""

from __future__ import annotations

from pprint import pprint

from .domain import GenerationConfig, Priority
from .logging_conf import configure_logging
from .services import JobCardService

DEMO_ORDER_ID = "ord-128"
DEMO_TEMPLATE_ID = "tpl-roller-shaft"


def ensure_demo_data(service: JobCardService) -> None:
    if len(service.processes) > 0:
        return

    cutting = service.register_process(
        "Cutting",
        code="PROC-CUT",
        default_setup_time_hours=0.25,
        default_cycle_time_per_piece_hours=0.1,
        process_id="proc-cutting",
    )
    turning = service.register_process(
        "CNC Turning",
        code="PROC-CNC",
        default_setup_time_hours=0.5,
        default_cycle_time_per_piece_hours=0.75,
        process_id="proc-cnc-turning",
    )
    grinding = service.register_process(
        "Grinding",
        code="PROC-GRD",
        default_setup_time_hours=0.33,
        default_cycle_time_per_piece_hours=0.4,
        process_id="proc-grinding",
    )
    assembly = service.register_process(
        "Assembly",
        code="PROC-ASM",
        default_setup_time_hours=0.5,
        default_cycle_time_per_piece_hours=0.25,
        process_id="proc-assembly",
    )

    saw = service.register_machine(
        "Bandsaw BS-01", [cutting.id], location="Raw material bay", machine_id="mc-bs-01"
    )
    lathe = service.register_machine(
        "CNC Lathe LT-02", [turning.id], location="Machine shop", machine_id="mc-lt-02"
    )
    grinder = service.register_machine(
        "Cylindrical Grinder CG-01",
        [grinding.id],
        location="Finishing",
        machine_id="mc-cg-01",
    )
    service.set_default_machine(cutting.id, saw.id)
    service.set_default_machine(turning.id, lathe.id)
    service.set_default_machine(grinding.id, grinder.id)

    service.register_template(
        "Roller shaft",
        [
            (cutting.id, True, False),
            (turning.id, True, False),
            (grinding.id, True, False),
            (assembly.id, True, False),
        ],
        description="Standard flow for conveyor roller shafts",
        template_id=DEMO_TEMPLATE_ID,
    )

    round_bar = service.register_material_stock(
        "EN8 round bar 50mm", "kg", quantity_on_hand=120.0, item_id="mat-en8-50"
    )
    bearings = service.register_material_stock(
        "Bearing 6204-2RS", "pcs", quantity_on_hand=12.0, item_id="mat-6204"
    )
    service.add_material_requirement(cutting.id, round_bar.id, 4.5)
    service.add_material_requirement(assembly.id, bearings.id, 2.0)

    service.register_order(
        "ORD-128",
        10,
        priority=Priority.HIGH,
        product_id="prd-roller-89",
        customer_id="cust-017",
        customer_name="Shree Conveyors Pvt Ltd",
        product_name="Conveyor roller 89mm",
        order_id=DEMO_ORDER_ID,
    )


def main() -> None:
    configure_logging("INFO")
    service = JobCardService()
    ensure_demo_data(service)
    template = service.templates.get(DEMO_TEMPLATE_ID)

    cards = service.generate_for_order(
        DEMO_ORDER_ID,
        template.id,
        GenerationConfig(selected_steps=[step.step_no for step in template.steps]),
        check_materials=True,
    )
    for card in cards:
        print(
            f"{card.job_card_no:<12} {card.process_name:<12} {card.status.value:<16}"
            f" deps={list(card.depends_on_job_card_ids)} "
            f"machine={card.assigned_machine_name or '-'} "
            f"est={card.estimated_total_time_min:.0f} min"
        )

    first = cards[0]
    service.start(DEMO_ORDER_ID, first.id)
    service.record_production(DEMO_ORDER_ID, first.id, completed_qty=first.quantity)
    cards = service.complete(DEMO_ORDER_ID, first.id)
    print("After completing", first.job_card_no)
    for card in cards:
        print(f"  {card.job_card_no:<12} {card.status.value}")

    pprint(service.summary(DEMO_ORDER_ID))
    critical = service.critical_path(DEMO_ORDER_ID)
    print("Critical path:", " -> ".join(card.job_card_no for card in critical.path))


if __name__ == "__main__":
    main()
