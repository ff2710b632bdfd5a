"""
Data model
==========

Each row of the storm-event CSV is converted into a `StormEvent` object.
Records are immutable (`frozen=True`): the pipeline derives new records
(`ScaledStormEvent`) and new summaries (`AggregateRow`) instead of editing
what was loaded.
"""

from dataclasses import dataclass
from typing import NamedTuple


@dataclass(frozen=True)
class StormEvent:
    """One raw storm-event record (only the columns the report consumes)."""
    event_id: int
    event_type: str
    fatalities: int
    injuries: int
    property_damage_base: float
    property_damage_scale_code: str
    crop_damage_base: float
    crop_damage_scale_code: str

    def has_impact(self) -> bool:
        """True when at least one impact measure is strictly positive."""
        return (
            self.fatalities > 0
            or self.injuries > 0
            or self.property_damage_base > 0
            or self.crop_damage_base > 0
        )


@dataclass(frozen=True)
class ScaledStormEvent:
    """A retained record with damage amounts converted to US$."""
    event_id: int
    event_type: str
    fatalities: int
    injuries: int
    property_damage: float
    crop_damage: float


@dataclass(frozen=True)
class AggregateRow:
    """Per-event-type totals. Built once per run."""
    event_type: str
    fatalities: int
    injuries: int
    property_damage: float
    crop_damage: float

    @property
    def combined_damage(self) -> float:
        # only used to pick which categories make the economic chart
        return self.property_damage + self.crop_damage


class CategoryTotal(NamedTuple):
    event_type: str
    value: float


class EconomicDamage(NamedTuple):
    """Long-format economic row: one per (event type, damage type)."""
    event_type: str
    damage_type: str
    damage_billions: float
