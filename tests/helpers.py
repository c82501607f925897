"""Builders shared by the test modules."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from jobcard_system.domain import JobCard, ProcessTemplate, ProcessTemplateStep


def make_template(
    steps: Sequence[Tuple[str, bool, bool]], template_id: str = "tpl-1"
) -> ProcessTemplate:
    """Steps as (process_id, is_mandatory, can_be_parallel)."""
    return ProcessTemplate(
        id=template_id,
        name="Test template",
        steps=[
            ProcessTemplateStep(
                process_id=process_id,
                process_name=process_id.title(),
                step_no=index,
                is_mandatory=mandatory,
                can_be_parallel=parallel,
            )
            for index, (process_id, mandatory, parallel) in enumerate(steps, start=1)
        ],
    )


def statuses(cards: Sequence[JobCard]) -> List[str]:
    return [card.status.value for card in cards]


def by_id(cards: Sequence[JobCard]) -> dict:
    return {card.id: card for card in cards}
