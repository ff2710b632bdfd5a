"""
Dataset loader (CSV -> StormEvent list)
=======================================

This module reads the NOAA storm-event export (a bzip2-compressed CSV) and
converts each row into a `StormEvent` object.

Key ideas:
- Only the seven columns the report uses are read; everything else is ignored.
- Column names are matched loosely (case / punctuation) because copies of the
  file in the wild are not always identical.
- Conversion helpers (_to_int/_to_float/_to_str/_to_label) turn blanks into 0 / ""
  so the rest of the pipeline never sees NaN. Event type labels are kept as-is.
- If the file is not on disk it is downloaded once from a fixed URL and cached.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Union
import re

import pandas as pd
import requests
import structlog

from .models import StormEvent

logger = structlog.get_logger(__name__)

DEFAULT_DATA_URL = "https://d396qusza40orc.cloudfront.net/repdata%2Fdata%2FStormData.csv.bz2"
DEFAULT_DATA_PATH = "data/StormData.csv.bz2"


class DatasetError(ValueError):
    """The input file is readable but not shaped like the storm database."""


class DatasetFetchError(RuntimeError):
    """Downloading the dataset failed."""


@dataclass
class DatasetSource:
    """Where the dataset lives locally and where to fetch it from."""
    path: str = DEFAULT_DATA_PATH
    url: str = DEFAULT_DATA_URL
    timeout: float = 60.0
    chunk_size: int = 1 << 16


# field name on StormEvent -> accepted column names
COLUMNS: Dict[str, tuple] = {
    "event_type": ("EVTYPE", "EVENT_TYPE", "Event Type"),
    "fatalities": ("FATALITIES", "DEATHS"),
    "injuries": ("INJURIES",),
    "property_damage_base": ("PROPDMG", "PROP_DMG"),
    "property_damage_scale_code": ("PROPDMGEXP", "PROP_DMG_EXP"),
    "crop_damage_base": ("CROPDMG", "CROP_DMG"),
    "crop_damage_scale_code": ("CROPDMGEXP", "CROP_DMG_EXP"),
}

_CODE_FIELDS = ("event_type", "property_damage_scale_code", "crop_damage_scale_code")


def _to_int(x) -> int:
    """Convert a cell to a non-negative int; blanks and junk become 0."""
    if pd.isna(x): return 0
    try: return max(int(float(x)), 0)
    except (TypeError, ValueError): return 0

def _to_float(x) -> float:
    if pd.isna(x): return 0.0
    try: return max(float(x), 0.0)
    except (TypeError, ValueError): return 0.0

def _to_str(x) -> str:
    if pd.isna(x): return ""
    return str(x).strip()

def _to_label(x) -> str:
    # event types are grouped verbatim, surrounding spaces included
    if pd.isna(x): return ""
    return str(x)

def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())

def _col(columns: List[str], *names: str) -> str:
    for n in names:
        if n in columns:
            return n
    norm_map = {_norm(c): c for c in columns}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    raise DatasetError(f"Missing required column. Tried={names}. Available={columns}")


def resolve_columns(columns: List[str]) -> Dict[str, str]:
    """Map each StormEvent field to the matching column of the file."""
    return {field: _col(list(columns), *names) for field, names in COLUMNS.items()}


def fetch_dataset(source: DatasetSource) -> Path:
    """Download `source.url` to `source.path`.

    The body is streamed to a `.part` file first and only renamed once
    complete, so an interrupted download never looks like a cached dataset.
    Any failure is fatal: there is no retry.
    """
    target = Path(source.path)
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")

    logger.info("fetch_started", url=source.url, target=str(target))
    try:
        with requests.get(source.url, stream=True, timeout=source.timeout) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=source.chunk_size):
                    if chunk:
                        f.write(chunk)
    except (requests.RequestException, OSError) as e:
        partial.unlink(missing_ok=True)
        logger.error("fetch_failed", url=source.url, error=str(e))
        raise DatasetFetchError(f"Could not download dataset from {source.url}: {e}") from e

    partial.replace(target)
    logger.info("fetch_finished", target=str(target), size_bytes=target.stat().st_size)
    return target


def ensure_dataset(source: DatasetSource) -> Path:
    """Return the local dataset path, downloading it first if it is missing."""
    path = Path(source.path)
    if path.exists():
        logger.debug("dataset_cached", path=str(path))
        return path
    return fetch_dataset(source)


def load_storm_csv(path: Union[str, Path]) -> List[StormEvent]:
    """
    Read a storm-event CSV (plain or compressed; pandas infers the codec from
    the file extension) into a list of StormEvent records.
    """
    header = pd.read_csv(path, nrows=0)
    raw_names = {str(c).strip(): c for c in header.columns}
    cols = {f: raw_names[c] for f, c in resolve_columns(list(raw_names)).items()}

    df = pd.read_csv(
        path,
        usecols=list(cols.values()),
        dtype={c: str for f, c in cols.items() if f in _CODE_FIELDS},
        keep_default_na=False,
        na_values=[""],
    )

    # column-wise zip is much faster than iterrows on ~900k rows
    rows = zip(*(df[cols[f]] for f in COLUMNS))
    events: List[StormEvent] = []
    for i, (evtype, fat, inj, prop, prop_exp, crop, crop_exp) in enumerate(rows):
        events.append(StormEvent(
            event_id=i,
            event_type=_to_label(evtype),
            fatalities=_to_int(fat),
            injuries=_to_int(inj),
            property_damage_base=_to_float(prop),
            property_damage_scale_code=_to_str(prop_exp),
            crop_damage_base=_to_float(crop),
            crop_damage_scale_code=_to_str(crop_exp),
        ))

    logger.info("dataset_loaded", path=str(path), records=len(events))
    return events


def load_storm_events(source: DatasetSource) -> List[StormEvent]:
    """Download-if-missing, then load."""
    return load_storm_csv(ensure_dataset(source))
