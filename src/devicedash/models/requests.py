"""Pydantic request models for the producer entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used by :mod:`devicedash.producer.app` and by the dashboard client.
"""

from __future__ import annotations

from pydantic import Field

from devicedash.models._base import DashFormModel


class StartSimulatorRequest(DashFormModel):
    """Body of ``POST /start``; every field is optional.

    Counts arrive as numbers from an HTML form, so fractional values are
    accepted here and rounded inwards when the settings are resolved.
    """

    items_minimum: float | None = Field(default=None, allow_inf_nan=False)
    items_maximum: float | None = Field(default=None, allow_inf_nan=False)
    update_chance: float | None = Field(default=None, ge=0, le=100, allow_inf_nan=False)
    update_interval: float | None = Field(default=None, gt=0, allow_inf_nan=False)
