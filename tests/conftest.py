"""Shared fixtures for the storm report tests."""

import pytest

from stormreport.models import StormEvent


def make_event(event_type="TORNADO", fatalities=0, injuries=0, prop=0.0, propexp="",
               crop=0.0, cropexp="", event_id=0):
    return StormEvent(
        event_id=event_id,
        event_type=event_type,
        fatalities=fatalities,
        injuries=injuries,
        property_damage_base=prop,
        property_damage_scale_code=propexp,
        crop_damage_base=crop,
        crop_damage_scale_code=cropexp,
    )


@pytest.fixture
def tornado_pair():
    """The two TORNADO records from the worked example."""
    return [
        make_event("TORNADO", 5, 10, 1.0, "K", 0.0, "", event_id=0),
        make_event("TORNADO", 3, 2, 2.0, "M", 1.0, "K", event_id=1),
    ]


@pytest.fixture
def small_dataset():
    """A mixed handful of records, including ones the filter must drop."""
    return [
        make_event("TORNADO", 5, 10, 1.0, "K", 0.0, "", event_id=0),
        make_event("TORNADO", 3, 2, 2.0, "M", 1.0, "K", event_id=1),
        make_event("FLOOD", 1, 0, 3.0, "B", 0.5, "B", event_id=2),
        make_event("HAIL", 0, 4, 10.0, "k", 20.0, "m", event_id=3),
        make_event("?", 9, 9, 9.0, "B", 0.0, "", event_id=4),
        make_event("THUNDERSTORM WIND", 0, 0, 0.0, "K", 0.0, "", event_id=5),
        make_event("EXCESSIVE HEAT", 7, 1, 0.0, "", 0.0, "?", event_id=6),
    ]
