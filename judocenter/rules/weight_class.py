from __future__ import annotations

import re
from typing import Any, Optional

from .age_category import UNCLASSIFIED


# Standard IJF divisions, lightest first. "-N" is an upper bound, "+N" the open top class.
WEIGHT_DIVISIONS: dict[str, tuple[str, ...]] = {
    "male": ("-60kg", "-66kg", "-73kg", "-81kg", "-90kg", "-100kg", "+100kg"),
    "female": ("-48kg", "-52kg", "-57kg", "-63kg", "-70kg", "-78kg", "+78kg"),
}

_DIVISION_LABEL = re.compile(r"^\s*([+-])\s*([0-9]+(?:\.[0-9]+)?)\s*kg\s*$", re.IGNORECASE)
_FIRST_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]+)?")


def division_limit(label: str) -> Optional[tuple[float, bool]]:
    """Parse a division label into ``(bound, open_ended)``; ``+100kg`` -> ``(100.0, True)``."""
    match = _DIVISION_LABEL.match(str(label or ""))
    if match is None:
        return None
    return float(match.group(2)), match.group(1) == "+"


def label_limit(label: str) -> Optional[float]:
    match = _FIRST_NUMBER.search(str(label or ""))
    if match is None:
        return None
    return float(match.group(0))


def upper_bound(label: str) -> Optional[float]:
    """Heaviest weight a class label allows: ``-66kg`` -> 66.0, ``+100kg`` -> None.

    Labels outside the ``±Nkg`` form fall back to their first number.
    """
    parsed = division_limit(label)
    if parsed is not None:
        bound, open_ended = parsed
        return None if open_ended else bound
    return label_limit(label)


def bucket_weight_class(gender: Any, weight: Any) -> str:
    w = _as_float(weight)
    if w is None or w <= 0:
        return UNCLASSIFIED
    divisions = WEIGHT_DIVISIONS.get(str(gender or "").strip().lower())
    if not divisions:
        return UNCLASSIFIED
    for label in divisions:
        parsed = division_limit(label)
        if parsed is None:
            continue
        bound, open_ended = parsed
        if open_ended:
            if w > bound:
                return label
        elif w <= bound:
            return label
    return UNCLASSIFIED


def _as_float(value: Any) -> Optional[float]:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
