"""Age-category resolution.

Age is counted as of January 1st of the reference year, which is the cutoff most judo
federations (IJF included) use: ``age = reference_year - birth_year``.
"""

from __future__ import annotations

from datetime import date
import re
from typing import Any, Iterable, Optional


UNCLASSIFIED = "Unclassified"

GENDER_CODES = {"male": "M", "female": "F"}

_LEADING_YEAR = re.compile(r"^\s*([0-9]{4})")


def birth_year_of(birth_date: Any) -> Optional[int]:
    if birth_date is None:
        return None
    if isinstance(birth_date, date):
        return birth_date.year
    match = _LEADING_YEAR.match(str(birth_date))
    if match is None:
        return None
    return int(match.group(1))


def age_on_cutoff(birth_date: Any, reference_year: Optional[int] = None) -> Optional[int]:
    birth_year = birth_year_of(birth_date)
    if birth_year is None:
        return None
    year = reference_year if reference_year is not None else date.today().year
    return int(year) - birth_year


def gender_code(gender: Any) -> Optional[str]:
    return GENDER_CODES.get(str(gender or "").strip().lower())


def resolve_age_category(
    birth_date: Any,
    gender: Any,
    categories: Optional[Iterable[Any]],
    reference_year: Optional[int] = None,
) -> str:
    age = age_on_cutoff(birth_date, reference_year)
    if age is None:
        return UNCLASSIFIED
    candidates = list(categories or [])
    if not candidates:
        return UNCLASSIFIED

    code = gender_code(gender)
    if code is not None:
        exact = _first_covering(candidates, age, code)
        if exact is not None:
            return exact
    mixed = _first_covering(candidates, age, "MIXED")
    if mixed is not None:
        return mixed
    return UNCLASSIFIED


def _first_covering(categories: list[Any], age: int, gender: str) -> Optional[str]:
    for category in categories:
        if _field(category, "gender") != gender:
            continue
        min_age = _as_int(_field(category, "min_age"))
        max_age = _as_int(_field(category, "max_age"))
        if min_age is None or max_age is None:
            continue
        if min_age <= age <= max_age:
            return str(_field(category, "name") or "")
    return None


def _field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _as_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
