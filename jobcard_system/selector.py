"""Resolution of the template steps that apply to a generation run."""

from __future__ import annotations

from typing import Iterable, List

from .domain import ProcessTemplate, ProcessTemplateStep
from .errors import ConfigurationError


def select_steps(
    template: ProcessTemplate, selected_step_numbers: Iterable[int]
) -> List[ProcessTemplateStep]:
    """Return the selected steps of ``template`` in template order.

    Mandatory steps are never added on the caller's behalf: leaving one out
    is a configuration error.
    """

    selected = set(selected_step_numbers)
    known = {step.step_no for step in template.steps}
    unknown = sorted(selected - known)
    if unknown:
        raise ConfigurationError(
            f"Template {template.id!r} has no step(s) {', '.join(map(str, unknown))}"
        )
    missing = [
        step for step in template.steps if step.is_mandatory and step.step_no not in selected
    ]
    if missing:
        names = ", ".join(f"{step.step_no}:{step.process_name}" for step in missing)
        raise ConfigurationError(f"mandatory step missing from selection ({names})")
    return [step for step in template.steps if step.step_no in selected]


__all__ = ["select_steps"]
