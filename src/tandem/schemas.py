"""Shared schema helpers for the JSON API."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

from tandem.errors import ValidationFailed

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _real_date(value: str) -> str:
    date.fromisoformat(value)
    return value


# A calendar date on the wire: shape-checked by pattern, then checked to exist.
DateStr = Annotated[str, StringConstraints(pattern=DATE_PATTERN), AfterValidator(_real_date)]


class ApiModel(BaseModel):
    """Base for request/response bodies: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def parse_date_param(value: str | None) -> date | None:
    """Query-string date; a well-shaped but impossible date is a 400."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationFailed(f"Invalid date: {value}") from None
