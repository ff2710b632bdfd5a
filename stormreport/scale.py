"""
Damage scale codes
==================

The storm database stores damage as a base amount plus a short "exponent"
code (PROPDMGEXP / CROPDMGEXP). The codes are not a clean vocabulary:
letters (K, M, B, H in either case), digits, blanks and stray symbols all
appear.

Resolution is an ordered rule table evaluated top to bottom. The first rule
whose `matches` returns True decides the multiplier:

    FixedLetterCode   H K M B        -> 10^2 10^3 10^6 10^9
    EmptyOrSign       "" - +         -> 1
    NumericDigit      any digit      -> 10^(the number)
    Unrecognized      anything else  -> 1

The last rule matches everything, so `normalize` never raises.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import math, re

_DIGITS_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class ScaleRule:
    """Base rule: subclasses decide whether they match and what they return."""
    name = "rule"

    def matches(self, code: str) -> bool:
        raise NotImplementedError

    def multiplier(self, code: str) -> float:
        raise NotImplementedError


@dataclass(frozen=True)
class FixedLetterCode(ScaleRule):
    letter: str
    exponent: int
    name = "letter"

    def matches(self, code: str) -> bool:
        return code == self.letter

    def multiplier(self, code: str) -> float:
        return 10.0 ** self.exponent


@dataclass(frozen=True)
class EmptyOrSign(ScaleRule):
    name = "empty-or-sign"

    def matches(self, code: str) -> bool:
        return code in ("", "-", "+")

    def multiplier(self, code: str) -> float:
        return 1.0


@dataclass(frozen=True)
class NumericDigit(ScaleRule):
    name = "digit"

    def matches(self, code: str) -> bool:
        return _DIGITS_RE.search(code) is not None

    def multiplier(self, code: str) -> float:
        # "3" -> 10^3; for mixed codes the first run of digits is the exponent
        exponent = float(_DIGITS_RE.search(code).group())
        try:
            return 10.0 ** exponent
        except OverflowError:
            return math.inf


@dataclass(frozen=True)
class Unrecognized(ScaleRule):
    name = "fallback"

    def matches(self, code: str) -> bool:
        return True

    def multiplier(self, code: str) -> float:
        return 1.0


SCALE_RULES: Tuple[ScaleRule, ...] = (
    FixedLetterCode("H", 2),
    FixedLetterCode("K", 3),
    FixedLetterCode("M", 6),
    FixedLetterCode("B", 9),
    EmptyOrSign(),
    NumericDigit(),
    Unrecognized(),
)


def _clean(code: Optional[str]) -> str:
    if code is None:
        return ""
    return str(code).strip().upper()


def resolve(code: Optional[str], rules: Iterable[ScaleRule] = SCALE_RULES) -> ScaleRule:
    """Return the first rule that accepts `code` (case-insensitive)."""
    c = _clean(code)
    for rule in rules:
        if rule.matches(c):
            return rule
    # a rule table without a catch-all is a programming error
    raise ValueError(f"No scale rule matched {code!r}")


def normalize(code: Optional[str]) -> float:
    """Map a raw scale code to its multiplier (a power of ten).

    >>> normalize("k")
    1000.0
    >>> normalize("?")
    1.0
    """
    c = _clean(code)
    return resolve(c).multiplier(c)


@dataclass(frozen=True)
class CodeUsage:
    """How often a raw code appears and what it resolved to."""
    column: str
    code: str
    count: int
    rule: str
    multiplier: float


def describe_codes(codes_by_column: Dict[str, Iterable[str]]) -> List[CodeUsage]:
    """Tally raw scale codes per column with their resolved rule.

    `codes_by_column` maps a label (e.g. "property") to the raw codes seen in
    that column. Rows come back grouped by column, most frequent code first.
    """
    out: List[CodeUsage] = []
    for column, codes in codes_by_column.items():
        counts = Counter(str(c) for c in codes)
        for code, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            rule = resolve(code)
            out.append(CodeUsage(
                column=column,
                code=code,
                count=n,
                rule=rule.name,
                multiplier=rule.multiplier(_clean(code)),
            ))
    return out
