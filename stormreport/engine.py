"""
Core engine
===========

The report pipeline is a straight line:

1) Filter   -> keep records with any impact and a known event type
2) Scale    -> turn (base, code) damage pairs into US$ amounts
3) Aggregate-> one AggregateRow per event type (four independent sums)
4) Rank     -> top-N tables for fatalities, injuries and economic damage

Every step returns new objects; loaded records are never edited.

Top-N selection keeps ties: if the N-th and (N+1)-th categories have the
same total, both are returned.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence
import heapq, math

import structlog

from .models import (
    AggregateRow,
    CategoryTotal,
    EconomicDamage,
    ScaledStormEvent,
    StormEvent,
)
from .scale import CodeUsage, describe_codes, normalize

logger = structlog.get_logger(__name__)

UNKNOWN_EVENT_TYPE = "?"
DEFAULT_TOP_N = 15
BILLION = 1e9


@dataclass
class AnalysisConfig:
    """Knobs for the aggregation step."""
    top_n: int = DEFAULT_TOP_N
    # event_type value that means "not recorded"
    unknown_marker: str = UNKNOWN_EVENT_TYPE


# ---------------- Filter ----------------
def is_retained(e: StormEvent, unknown_marker: str = UNKNOWN_EVENT_TYPE) -> bool:
    return e.has_impact() and e.event_type != unknown_marker


def filter_events(events: Iterable[StormEvent], unknown_marker: str = UNKNOWN_EVENT_TYPE) -> List[StormEvent]:
    """Keep records with measurable impact (input order is preserved)."""
    return [e for e in events if is_retained(e, unknown_marker)]


# ---------------- Scale ----------------
def _scaled(base: float, code: str) -> float:
    # a zero amount stays zero whatever the code (0 * inf would be nan)
    if base == 0:
        return 0.0
    return base * normalize(code)


def scale_event(e: StormEvent) -> ScaledStormEvent:
    return ScaledStormEvent(
        event_id=e.event_id,
        event_type=e.event_type,
        fatalities=e.fatalities,
        injuries=e.injuries,
        property_damage=_scaled(e.property_damage_base, e.property_damage_scale_code),
        crop_damage=_scaled(e.crop_damage_base, e.crop_damage_scale_code),
    )


def scale_events(events: Iterable[StormEvent]) -> List[ScaledStormEvent]:
    return [scale_event(e) for e in events]


# ---------------- Aggregate ----------------
def aggregate(events: Iterable[ScaledStormEvent]) -> Dict[str, AggregateRow]:
    """Group by event_type (exact string match) and sum each measure.

    Damage sums use math.fsum so the totals do not depend on input order.
    """
    fatalities: Dict[str, int] = {}
    injuries: Dict[str, int] = {}
    prop: Dict[str, List[float]] = {}
    crop: Dict[str, List[float]] = {}

    for e in events:
        k = e.event_type
        fatalities[k] = fatalities.get(k, 0) + e.fatalities
        injuries[k] = injuries.get(k, 0) + e.injuries
        prop.setdefault(k, []).append(e.property_damage)
        crop.setdefault(k, []).append(e.crop_damage)

    return {
        k: AggregateRow(
            event_type=k,
            fatalities=fatalities[k],
            injuries=injuries[k],
            property_damage=math.fsum(prop[k]),
            crop_damage=math.fsum(crop[k]),
        )
        for k in fatalities
    }


# ---------------- Rank ----------------
def top_n_with_ties(
    rows: Iterable[AggregateRow],
    n: int,
    key: Callable[[AggregateRow], float],
) -> List[AggregateRow]:
    """Return the n rows with the largest key, plus any rows tied with the n-th.

    Output is sorted by key descending, then event_type for a stable order.
    """
    rows = list(rows)
    if n <= 0 or not rows:
        return []
    best = heapq.nlargest(n, rows, key=key)
    cutoff = key(best[-1])
    selected = [r for r in rows if key(r) >= cutoff]
    selected.sort(key=lambda r: (-key(r), r.event_type))
    return selected


def rank_fatalities(rows: Iterable[AggregateRow], n: int = DEFAULT_TOP_N) -> List[CategoryTotal]:
    return [CategoryTotal(r.event_type, r.fatalities) for r in top_n_with_ties(rows, n, lambda r: r.fatalities)]


def rank_injuries(rows: Iterable[AggregateRow], n: int = DEFAULT_TOP_N) -> List[CategoryTotal]:
    return [CategoryTotal(r.event_type, r.injuries) for r in top_n_with_ties(rows, n, lambda r: r.injuries)]


def rank_economic(rows: Iterable[AggregateRow], n: int = DEFAULT_TOP_N) -> List[EconomicDamage]:
    """Select by combined damage, then report property and crop separately.

    Two rows per category (Property first), amounts in US$ billions rounded
    to 2 decimals.
    """
    out: List[EconomicDamage] = []
    for r in top_n_with_ties(rows, n, lambda r: r.combined_damage):
        out.append(EconomicDamage(r.event_type, "Property", round(r.property_damage / BILLION, 2)))
        out.append(EconomicDamage(r.event_type, "Crop", round(r.crop_damage / BILLION, 2)))
    return out


# ---------------- Summary ----------------
@dataclass(frozen=True)
class StormSummary:
    """Everything the report / exports need, computed once."""
    total_records: int
    retained_records: int
    event_types: int
    top_n: int
    fatalities: List[CategoryTotal]
    injuries: List[CategoryTotal]
    economic: List[EconomicDamage]
    scale_codes: List[CodeUsage] = field(default_factory=list)

    def tables(self) -> Dict[str, list]:
        return {"fatalities": self.fatalities, "injuries": self.injuries, "economic": self.economic}


@dataclass
class StormImpactEngine:
    """Runs the pipeline over a loaded dataset and caches the results.

    Typical use:
        engine = StormImpactEngine(events)
        summary = engine.summary()
    """
    events: List[StormEvent]
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    dataset_path: Optional[str] = None
    _retained: Optional[List[StormEvent]] = field(default=None, init=False, repr=False)
    _aggregates: Optional[Dict[str, AggregateRow]] = field(default=None, init=False, repr=False)

    def retained(self) -> List[StormEvent]:
        if self._retained is None:
            self._retained = filter_events(self.events, self.config.unknown_marker)
            logger.info("records_retained", total=len(self.events), retained=len(self._retained))
        return self._retained

    def aggregates(self) -> Dict[str, AggregateRow]:
        if self._aggregates is None:
            self._aggregates = aggregate(scale_events(self.retained()))
            logger.info("aggregated", event_types=len(self._aggregates))
        return self._aggregates

    def scale_code_usage(self) -> List[CodeUsage]:
        kept = self.retained()
        return describe_codes({
            "property": [e.property_damage_scale_code for e in kept],
            "crop": [e.crop_damage_scale_code for e in kept],
        })

    def summary(self) -> StormSummary:
        rows = list(self.aggregates().values())
        n = self.config.top_n
        return StormSummary(
            total_records=len(self.events),
            retained_records=len(self.retained()),
            event_types=len(rows),
            top_n=n,
            fatalities=rank_fatalities(rows, n),
            injuries=rank_injuries(rows, n),
            economic=rank_economic(rows, n),
            scale_codes=self.scale_code_usage(),
        )

    # ---------------- Export ----------------
    def export_csv(self, path: str, summary: Optional[StormSummary] = None) -> None:
        """Write all three ranked tables to one long-format CSV."""
        import csv
        summary = summary or self.summary()
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(["table", "rank", "event_type", "damage_type", "value"])
            for table in ("fatalities", "injuries"):
                for i, row in enumerate(getattr(summary, table), start=1):
                    w.writerow([table, i, row.event_type, "", row.value])
            for i, row in enumerate(summary.economic, start=2):
                w.writerow(["economic", i // 2, row.event_type, row.damage_type, row.damage_billions])

    def export_json(self, path: str, summary: Optional[StormSummary] = None) -> None:
        """Write the ranked tables to JSON, one key per table."""
        import json
        summary = summary or self.summary()
        payload = {
            "total_records": summary.total_records,
            "retained_records": summary.retained_records,
            "event_types": summary.event_types,
            "top_n": summary.top_n,
            "fatalities": [r._asdict() for r in summary.fatalities],
            "injuries": [r._asdict() for r in summary.injuries],
            "economic": [r._asdict() for r in summary.economic],
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)


def summarize(events: Sequence[StormEvent], config: Optional[AnalysisConfig] = None) -> StormSummary:
    """One-shot helper: filter, scale, aggregate and rank."""
    return StormImpactEngine(events=list(events), config=config or AnalysisConfig()).summary()
