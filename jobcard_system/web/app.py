"""FastAPI adapter exposing job card generation and production events."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Form, HTTPException, Request

from ..domain import (
    EventType,
    GenerationConfig,
    JobCard,
    MaterialShortfall,
    ProductionEvent,
    SchedulingStrategy,
)
from ..errors import ConfigurationError, JobCardError
from ..generator import JobCardSummary
from ..logging_conf import configure_logging
from ..repository import DuplicateRecordError, RecordNotFoundError
from ..sample_usage import ensure_demo_data
from ..services import JobCardService
from ..settings import Settings, load_settings

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[JobCardService] = None, settings: Optional[Settings] = None
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if service is None:
        service = JobCardService(default_actor=settings.default_actor)
        ensure_demo_data(service)

    app = FastAPI(title=settings.title)
    app.state.jobcard_service = service
    app.state.settings = settings

    @app.get("/orders/{order_id}/job-cards")
    async def list_job_cards(order_id: str, request: Request):
        service: JobCardService = request.app.state.jobcard_service
        try:
            cards = service.get_job_cards(order_id)
        except RecordNotFoundError as exc:
            raise http_error(exc) from exc
        return {
            "job_cards": [serialize_job_card(card) for card in cards],
            "summary": serialize_summary(service.summary(order_id)),
        }

    @app.post("/orders/{order_id}/job-cards", status_code=201)
    async def generate_job_cards(
        order_id: str,
        request: Request,
        template_id: str = Form(...),
        selected_steps: str = Form(""),
        auto_assign_machines: bool = Form(True),
        scheduling_strategy: str = Form("ASAP"),
        replace_existing: Optional[str] = Form(None),
        check_materials: Optional[str] = Form(None),
    ):
        service: JobCardService = request.app.state.jobcard_service
        try:
            config = build_config(
                service, template_id, selected_steps, auto_assign_machines, scheduling_strategy
            )
            cards = service.generate_for_order(
                order_id,
                template_id,
                config,
                replace_existing=replace_existing is not None,
                check_materials=check_materials is not None,
            )
        except (JobCardError, RecordNotFoundError, DuplicateRecordError, ValueError) as exc:
            raise http_error(exc) from exc
        return {"job_cards": [serialize_job_card(card) for card in cards]}

    @app.post("/orders/{order_id}/job-cards/preview")
    async def preview_job_cards(
        order_id: str,
        request: Request,
        template_id: str = Form(...),
        selected_steps: str = Form(""),
        auto_assign_machines: bool = Form(True),
        scheduling_strategy: str = Form("ASAP"),
    ):
        service: JobCardService = request.app.state.jobcard_service
        try:
            config = build_config(
                service, template_id, selected_steps, auto_assign_machines, scheduling_strategy
            )
            cards = service.preview_for_order(order_id, template_id, config)
        except (JobCardError, RecordNotFoundError, ValueError) as exc:
            raise http_error(exc) from exc
        return {"job_cards": [serialize_job_card(card) for card in cards]}

    @app.post("/orders/{order_id}/job-cards/{job_card_id}/events")
    async def apply_event(
        order_id: str,
        job_card_id: str,
        request: Request,
        event_type: str = Form(...),
        completed_qty: int = Form(0),
        rejected_qty: int = Form(0),
        in_progress_qty: Optional[int] = Form(None),
        material_id: Optional[str] = Form(None),
        required: float = Form(0.0),
        available: float = Form(0.0),
    ):
        service: JobCardService = request.app.state.jobcard_service
        try:
            event = ProductionEvent(
                event_type=EventType(event_type.lower()),
                job_card_id=job_card_id,
                completed_qty=completed_qty,
                rejected_qty=rejected_qty,
                in_progress_qty=in_progress_qty,
                actor=service.default_actor,
            )
            if material_id:
                event.shortfalls = (
                    MaterialShortfall(
                        material_id=material_id, required=required, available=available
                    ),
                )
            cards = service.apply_event(order_id, event)
        except (JobCardError, RecordNotFoundError, ValueError) as exc:
            raise http_error(exc) from exc
        return {"job_cards": [serialize_job_card(card) for card in cards]}

    @app.post("/orders/{order_id}/materials/check")
    async def check_materials(order_id: str, request: Request):
        service: JobCardService = request.app.state.jobcard_service
        try:
            cards = service.check_materials(order_id)
        except (JobCardError, RecordNotFoundError) as exc:
            raise http_error(exc) from exc
        return {"job_cards": [serialize_job_card(card) for card in cards]}

    @app.get("/orders/{order_id}/execution-order")
    async def execution_order(order_id: str, request: Request):
        service: JobCardService = request.app.state.jobcard_service
        try:
            levels = service.execution_order(order_id)
        except RecordNotFoundError as exc:
            raise http_error(exc) from exc
        return {"levels": [[card.id for card in level] for level in levels]}

    @app.get("/orders/{order_id}/critical-path")
    async def critical_path(order_id: str, request: Request):
        service: JobCardService = request.app.state.jobcard_service
        try:
            result = service.critical_path(order_id)
        except RecordNotFoundError as exc:
            raise http_error(exc) from exc
        return {
            "path": [card.id for card in result.path],
            "total_time_min": result.total_time_min,
        }

    return app


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, RecordNotFoundError):
        status_code = 404
    elif isinstance(exc, (ConfigurationError, ValueError)):
        status_code = 400
    else:
        status_code = 409
    logger.info("Request failed with %d: %s", status_code, exc)
    return HTTPException(status_code=status_code, detail=str(exc))


def split_csv(values: str) -> List[str]:
    return [value.strip() for value in values.split(",") if value.strip()]


def parse_step_numbers(value: str) -> List[int]:
    try:
        return [int(token) for token in split_csv(value)]
    except ValueError as exc:
        raise ValueError(f"Invalid step selection {value!r}") from exc


def build_config(
    service: JobCardService,
    template_id: str,
    selected_steps: str,
    auto_assign_machines: bool,
    scheduling_strategy: str,
) -> GenerationConfig:
    steps = parse_step_numbers(selected_steps)
    if not steps:
        steps = service.templates.get(template_id).default_selection()
    return GenerationConfig(
        selected_steps=steps,
        auto_assign_machines=auto_assign_machines,
        scheduling_strategy=SchedulingStrategy(scheduling_strategy.upper()),
    )


def serialize_job_card(card: JobCard) -> Dict[str, Any]:
    payload = asdict(card)
    payload["material_shortfalls"] = [
        {**asdict(item), "shortfall": item.shortfall} for item in card.material_shortfalls
    ]
    payload["has_material_shortfall"] = card.has_material_shortfall
    return payload


def serialize_summary(summary: JobCardSummary) -> Dict[str, Any]:
    payload = asdict(summary)
    payload["counts_by_status"] = {
        status.value: count for status, count in summary.counts_by_status.items()
    }
    return payload
