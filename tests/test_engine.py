"""
Tests for the filter / scale / aggregate / rank pipeline.
"""

import json
import random

import pytest

from conftest import make_event
from stormreport.engine import (
    AnalysisConfig,
    StormImpactEngine,
    aggregate,
    filter_events,
    rank_economic,
    rank_fatalities,
    rank_injuries,
    scale_event,
    scale_events,
    summarize,
    top_n_with_ties,
)
from stormreport.models import AggregateRow, CategoryTotal, EconomicDamage


def _row(name, fatalities=0, injuries=0, prop=0.0, crop=0.0):
    return AggregateRow(name, fatalities, injuries, prop, crop)


class TestFilter:

    def test_drops_records_without_impact(self, small_dataset):
        kept = filter_events(small_dataset)
        assert all(e.has_impact() for e in kept)
        assert "THUNDERSTORM WIND" not in {e.event_type for e in kept}

    def test_drops_unknown_event_type(self, small_dataset):
        kept = filter_events(small_dataset)
        assert "?" not in {e.event_type for e in kept}

    def test_custom_unknown_marker(self, small_dataset):
        kept = filter_events(small_dataset, unknown_marker="HAIL")
        types = {e.event_type for e in kept}
        assert "HAIL" not in types
        assert "?" in types

    def test_preserves_order(self, small_dataset):
        kept = filter_events(small_dataset)
        assert [e.event_id for e in kept] == [0, 1, 2, 3, 6]

    def test_any_single_positive_field_retains(self):
        for kwargs in ({"fatalities": 1}, {"injuries": 1}, {"prop": 0.1}, {"crop": 0.1}):
            assert filter_events([make_event("X", **kwargs)])


class TestScale:

    def test_scaled_amounts(self):
        s = scale_event(make_event("FLOOD", prop=2.5, propexp="m", crop=3.0, cropexp="5"))
        assert s.property_damage == 2.5e6
        assert s.crop_damage == 3.0e5

    def test_zero_amount_with_oversized_code_stays_zero(self):
        s = scale_event(make_event("A", fatalities=1, prop=0.0, propexp="400", crop=0.0, cropexp="999"))
        assert s.property_damage == 0.0
        assert s.crop_damage == 0.0

    def test_oversized_code_keeps_category_in_economic_table(self):
        summary = summarize([
            make_event("A", fatalities=1, prop=0.0, propexp="400"),
            make_event("B", prop=5.0, propexp="K"),
        ])
        names = [r.event_type for r in summary.economic]
        assert names == ["B", "B", "A", "A"]
        assert summary.economic[2] == EconomicDamage("A", "Property", 0.0)

    def test_input_not_mutated(self, tornado_pair):
        before = list(tornado_pair)
        scale_events(tornado_pair)
        assert tornado_pair == before
        assert tornado_pair[1].property_damage_base == 2.0


class TestAggregate:

    def test_tornado_example(self, tornado_pair):
        rows = aggregate(scale_events(filter_events(tornado_pair)))
        t = rows["TORNADO"]
        assert t.fatalities == 8
        assert t.injuries == 12
        assert t.property_damage == 2_001_000.0
        assert t.crop_damage == 1000.0

    def test_event_types_are_not_merged(self):
        rows = aggregate(scale_events([
            make_event("TSTM WIND", 1),
            make_event("THUNDERSTORM WIND", 1),
            make_event("tornado", 1),
            make_event("TORNADO", 1),
        ]))
        assert set(rows) == {"TSTM WIND", "THUNDERSTORM WIND", "tornado", "TORNADO"}

    def test_order_independent(self, small_dataset):
        scaled = scale_events(filter_events(small_dataset))
        expected = aggregate(scaled)
        rng = random.Random(7)
        for _ in range(5):
            shuffled = scaled[:]
            rng.shuffle(shuffled)
            assert aggregate(shuffled) == expected


class TestTopN:

    def test_truncates_without_ties(self):
        rows = [_row(f"E{i}", fatalities=i) for i in range(20)]
        top = top_n_with_ties(rows, 15, lambda r: r.fatalities)
        assert len(top) == 15
        assert top[0].event_type == "E19"
        assert top[-1].event_type == "E5"

    def test_tie_at_cutoff_is_included(self):
        rows = [_row(f"E{i:02d}", fatalities=100 - i) for i in range(14)]
        rows += [_row("TIE_A", fatalities=10), _row("TIE_B", fatalities=10), _row("LOW", fatalities=1)]
        top = top_n_with_ties(rows, 15, lambda r: r.fatalities)
        names = [r.event_type for r in top]
        assert len(top) == 16
        assert names[-2:] == ["TIE_A", "TIE_B"]
        assert "LOW" not in names

    def test_fewer_rows_than_n(self):
        rows = [_row("A", 1), _row("B", 2)]
        assert [r.event_type for r in top_n_with_ties(rows, 15, lambda r: r.fatalities)] == ["B", "A"]

    def test_empty_and_zero_n(self):
        assert top_n_with_ties([], 15, lambda r: r.fatalities) == []
        assert top_n_with_ties([_row("A", 1)], 0, lambda r: r.fatalities) == []

    def test_rank_fatalities_and_injuries(self):
        rows = [_row("A", 5, 1), _row("B", 1, 9)]
        assert rank_fatalities(rows, 1) == [CategoryTotal("A", 5)]
        assert rank_injuries(rows, 1) == [CategoryTotal("B", 9)]

    def test_economic_selects_by_combined_reports_separately(self):
        rows = [
            _row("FLOOD", prop=100e9, crop=5e9),
            _row("DROUGHT", prop=1e9, crop=13e9),
            _row("HAIL", prop=10e9, crop=3e9),
        ]
        out = rank_economic(rows, 2)
        assert out == [
            EconomicDamage("FLOOD", "Property", 100.0),
            EconomicDamage("FLOOD", "Crop", 5.0),
            EconomicDamage("DROUGHT", "Property", 1.0),
            EconomicDamage("DROUGHT", "Crop", 13.0),
        ]

    def test_economic_tie_at_cutoff_keeps_pairs(self):
        n = 3
        rows = [
            _row("FLOOD", prop=50e9, crop=10e9),
            _row("HURRICANE", prop=40e9, crop=1e9),
            _row("DROUGHT", prop=1e9, crop=9e9),
            _row("HAIL", prop=8e9, crop=2e9),
            _row("FROST", prop=0.0, crop=1e9),
        ]
        out = rank_economic(rows, n)
        assert len(out) == 2 * (n + 1)
        names = [r.event_type for r in out]
        assert names == ["FLOOD", "FLOOD", "HURRICANE", "HURRICANE", "DROUGHT", "DROUGHT", "HAIL", "HAIL"]
        assert [r.damage_type for r in out] == ["Property", "Crop"] * (n + 1)
        assert out[4:] == [
            EconomicDamage("DROUGHT", "Property", 1.0),
            EconomicDamage("DROUGHT", "Crop", 9.0),
            EconomicDamage("HAIL", "Property", 8.0),
            EconomicDamage("HAIL", "Crop", 2.0),
        ]

    def test_economic_rounds_to_two_decimals(self):
        out = rank_economic([_row("X", prop=1_234_567_890.0, crop=4_999_999.0)], 15)
        assert out[0].damage_billions == 1.23
        assert out[1].damage_billions == 0.0


class TestEngine:

    def test_summary(self, small_dataset):
        summary = summarize(small_dataset)
        assert summary.total_records == 7
        assert summary.retained_records == 5
        assert summary.event_types == 4
        assert summary.top_n == 15
        assert summary.fatalities[0] == CategoryTotal("TORNADO", 8)
        assert summary.injuries[0] == CategoryTotal("TORNADO", 12)
        assert summary.economic[0] == EconomicDamage("FLOOD", "Property", 3.0)
        assert summary.economic[1] == EconomicDamage("FLOOD", "Crop", 0.5)

    def test_top_n_config(self, small_dataset):
        engine = StormImpactEngine(small_dataset, config=AnalysisConfig(top_n=1))
        summary = engine.summary()
        assert len(summary.fatalities) == 1
        assert len(summary.economic) == 2

    def test_scale_code_usage_covers_retained_only(self, small_dataset):
        usage = StormImpactEngine(small_dataset).scale_code_usage()
        prop_total = sum(u.count for u in usage if u.column == "property")
        assert prop_total == 5

    def test_export_csv(self, small_dataset, tmp_path):
        out = tmp_path / "summary.csv"
        StormImpactEngine(small_dataset).export_csv(str(out))
        lines = out.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "table,rank,event_type,damage_type,value"
        assert "fatalities,1,TORNADO,,8" in lines
        assert "economic,1,FLOOD,Property,3.0" in lines
        assert "economic,1,FLOOD,Crop,0.5" in lines

    def test_export_json(self, small_dataset, tmp_path):
        out = tmp_path / "summary.json"
        StormImpactEngine(small_dataset).export_json(str(out))
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["retained_records"] == 5
        assert payload["injuries"][0] == {"event_type": "TORNADO", "value": 12}
        assert payload["economic"][0]["damage_type"] == "Property"
