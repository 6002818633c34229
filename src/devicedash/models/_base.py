"""Base models and enum for device dashboard payloads.

Every wire model inherits from :class:`DashBaseModel`, which sets
``alias_generator=to_camel`` so camelCase JSON keys map automatically to
snake_case fields.

Request bodies that arrive from HTML forms inherit from
:class:`DashFormModel` instead. It adds a ``model_validator(mode="before")``
that drops empty form values (``""`` and ``None``) so the field default is
used. Stored records must not use it: a blank value there is data.

Code enums inherit from :class:`DashEnum`, an ``IntEnum`` that knows how
to render itself for humans.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

# Values an HTML form sends for a field the user left blank.
_BLANKS = frozenset({""})


class DashEnum(enum.IntEnum):
    """Base for the closed status code sets."""

    @property
    def label(self) -> str:
        """Human label, e.g. ``"DEVICE LOW BATTERY"``."""
        return self.name.replace("_", " ")


class DashBaseModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class DashFormModel(DashBaseModel):
    """Base for request bodies where a blank form field means "use the default"."""

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _BLANKS:
                continue
            cleaned[key] = value
        return cleaned
