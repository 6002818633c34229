"""Status simulator settings model."""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from devicedash._constants import DEFAULT_UPDATE_CHANCE, DEFAULT_UPDATE_INTERVAL_MS
from devicedash.models.requests import StartSimulatorRequest


class SimulatorState(StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"


class SimulatorSettings(BaseModel):
    """Effective simulator parameters, fixed for one Running period.

    Parameters
    ----------
    items_minimum : int
        Fewest devices updated by a productive tick (``>= 1``).
    items_maximum : int
        Most devices updated by a productive tick (``<= device count``).
    update_chance : float
        Percentage chance (0-100) that a tick produces updates.
    update_interval_ms : int
        Milliseconds between ticks.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    items_minimum: int = Field(ge=1)
    items_maximum: int = Field(ge=1)
    update_chance: float = Field(ge=0, le=100)
    update_interval_ms: int = Field(gt=0)

    @classmethod
    def resolve(cls, request: StartSimulatorRequest, device_count: int) -> SimulatorSettings:
        """Apply defaults and clamp the item bounds into ``[1, device_count]``.

        A missing or zero minimum becomes 1, a missing or zero maximum becomes
        the device count. When the bounds cross, the maximum is raised to the
        minimum so the draw range is never empty.
        """
        if device_count < 1:
            raise ValueError("device_count must be positive")

        minimum = math.ceil(request.items_minimum) if request.items_minimum else 1
        maximum = math.floor(request.items_maximum) if request.items_maximum else device_count
        minimum = max(1, min(minimum, device_count))
        maximum = max(1, min(maximum, device_count))
        maximum = max(maximum, minimum)

        chance = DEFAULT_UPDATE_CHANCE if request.update_chance is None else request.update_chance
        interval = DEFAULT_UPDATE_INTERVAL_MS if request.update_interval is None else request.update_interval

        return cls(
            items_minimum=minimum,
            items_maximum=maximum,
            update_chance=chance,
            update_interval_ms=max(1, int(interval)),
        )

    def to_api(self) -> dict[str, float | int]:
        return {
            "itemsMinimum": self.items_minimum,
            "itemsMaximum": self.items_maximum,
            "updateChance": self.update_chance,
            "updateInterval": self.update_interval_ms,
        }
