"""Validation helpers applied before any request reaches the agent.

Functions raise ``ValidationError`` (a ``ValueError``) on invalid input and
otherwise return the normalized value. Nothing here performs I/O.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

from agent_panel.shared.data_types import PLAN_FILTERS, PlanItem


class ValidationError(ValueError):
    """Raised when user input is rejected locally, before any network call."""

    def __init__(self, title: str, description: str) -> None:
        super().__init__(description)
        self.title = title
        self.description = description


def validate_task_description(description: Optional[str]) -> str:
    normalized = (description or "").strip()
    if not normalized:
        raise ValidationError("Empty input", "Describe the task before submitting it.")
    return normalized


def validate_plan_item(item: PlanItem) -> PlanItem:
    """Only the title is checked; priority and status are the agent's business."""
    if not (item.title or "").strip():
        raise ValidationError("Missing title", "Enter a title for the plan item.")
    return item


def validate_choice(label: str, value: str, choices: Sequence[str]) -> str:
    if value not in choices:
        raise ValidationError(f"Invalid {label}", f"{label} must be one of {', '.join(choices)}.")
    return value


def validate_plan_filter(status_filter: str) -> str:
    return validate_choice("filter", status_filter, PLAN_FILTERS)


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def _coerce_scalar(key: str, value: Any, reference: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if isinstance(reference, bool):
        lowered = text.lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValidationError("Invalid setting", f"{key} must be a boolean, got {value!r}.")
    if isinstance(reference, int):
        try:
            return int(text)
        except ValueError:
            raise ValidationError("Invalid setting", f"{key} must be an integer, got {value!r}.") from None
    if isinstance(reference, float):
        try:
            return float(text)
        except ValueError:
            raise ValidationError("Invalid setting", f"{key} must be a number, got {value!r}.") from None
    if reference is None:
        # Unknown key: numeric-looking strings become numbers.
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return value
    return value


def coerce_settings(
    updates: Mapping[str, Any],
    current: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge ``updates`` over ``current`` and coerce string values.

    A key already present in ``current`` keeps the type of its current value
    (bool, int or float); unknown keys holding numeric strings become numbers.
    """
    merged: Dict[str, Any] = dict(current or {})
    for key, value in updates.items():
        if key == "persist":
            continue
        merged[key] = _coerce_scalar(key, value, (current or {}).get(key))
    return merged


__all__ = [
    "ValidationError",
    "coerce_settings",
    "validate_choice",
    "validate_plan_filter",
    "validate_plan_item",
    "validate_task_description",
]
