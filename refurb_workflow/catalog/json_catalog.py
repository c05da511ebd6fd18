"""Step catalog loaded from a JSON document.

Expected layout::

    {
      "PHONE": {
        "REFURBZ_IN_PROGRESS": [
          {"code": "PHONE_FACTORY_RESET", "name": "Factory Reset",
           "type": "CHECKLIST", "required": true, "order": 1,
           "checklist_items": ["Reset completed"]}
        ]
      },
      "OTHER": {...}
    }
"""

import json
from pathlib import Path
from typing import Any

from refurb_workflow.catalog.base import BaseStepCatalog, WorkflowStep
from refurb_workflow.catalog.static_catalog import CategorySteps, StaticStepCatalog
from refurb_workflow.workflow.exceptions import StepCatalogError
from refurb_workflow.workflow.states import ProductCategory, RefurbState, StepType


class JsonStepCatalog(BaseStepCatalog):
    """Loads the catalog file on first use and serves it from memory."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._catalog: StaticStepCatalog | None = None

    def steps_for(self, category: ProductCategory, state: RefurbState) -> list[WorkflowStep]:
        if self._catalog is None:
            self._catalog = StaticStepCatalog(load_catalog(self._path))
        return self._catalog.steps_for(category, state)


def load_catalog(path: Path) -> dict[ProductCategory, CategorySteps]:
    """Read and validate a catalog file.

    Raises:
        StepCatalogError: if the file cannot be read or does not match the layout.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise StepCatalogError(f"Failed to load step catalog: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise StepCatalogError(f"Step catalog is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise StepCatalogError("Step catalog must be an object keyed by category")

    catalog: dict[ProductCategory, CategorySteps] = {}
    for category_code, states in raw.items():
        category = _parse_enum(ProductCategory, category_code, "category")
        if not isinstance(states, dict):
            raise StepCatalogError(f"Steps for {category_code} must be an object keyed by state")
        catalog[category] = {
            _parse_enum(RefurbState, state_code, "state"): _build_steps(steps, state_code)
            for state_code, steps in states.items()
        }
    return catalog


def _build_steps(raw: Any, state_code: str) -> list[WorkflowStep]:
    if not isinstance(raw, list):
        raise StepCatalogError(f"Steps for state {state_code} must be a list")
    steps: list[WorkflowStep] = []
    seen_codes: set[str] = set()
    for i, item in enumerate(raw):
        step = _build_step(item, i, state_code)
        if step.code in seen_codes:
            raise StepCatalogError(f"Duplicate step code {step.code} in {state_code}")
        seen_codes.add(step.code)
        steps.append(step)
    return steps


def _build_step(item: Any, i: int, state_code: str) -> WorkflowStep:
    if not isinstance(item, dict) or not isinstance(item.get("code"), str):
        raise StepCatalogError(f"Step {i} in {state_code} must be an object with a 'code'")
    code = item["code"]
    where = f"step {code} in {state_code}"

    for field in ("name", "prompt"):
        if field in item and not isinstance(item[field], str):
            raise StepCatalogError(f"'{field}' of {where} must be a string")
    help_text = item.get("help_text")
    if help_text is not None and not isinstance(help_text, str):
        raise StepCatalogError(f"'help_text' of {where} must be a string or null")
    required = item.get("required", True)
    if not isinstance(required, bool):
        raise StepCatalogError(f"'required' of {where} must be true or false")
    order = item.get("order", i + 1)
    if isinstance(order, bool) or not isinstance(order, int):
        raise StepCatalogError(f"'order' of {where} must be an integer")
    checklist_items = item.get("checklist_items", [])
    if not isinstance(checklist_items, list) or not all(
        isinstance(entry, str) for entry in checklist_items
    ):
        raise StepCatalogError(f"'checklist_items' of {where} must be a list of strings")
    input_schema = item.get("input_schema")
    if input_schema is not None and not isinstance(input_schema, dict):
        raise StepCatalogError(f"'input_schema' of {where} must be an object or null")

    return WorkflowStep(
        code=code,
        name=item.get("name", code),
        type=_parse_enum(StepType, item.get("type", "CONFIRMATION"), "step type"),
        prompt=item.get("prompt", ""),
        required=required,
        order=order,
        help_text=help_text,
        checklist_items=list(checklist_items),
        input_schema=input_schema,
    )


def _parse_enum(enum_cls: Any, value: Any, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise StepCatalogError(f"Unknown {label} '{value}' in step catalog") from exc
