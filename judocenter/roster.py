"""Roster aggregation for display, summaries and PDF export.

Rows are built from the resolver, bucketer and validator outputs; nothing here stores
classification results, every row is recomputed from the athlete record.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from .rules.age_category import UNCLASSIFIED, resolve_age_category
from .rules.eligibility import EligibilityConflict, check_roster_assignment, validate_eligibility
from .rules.specs import categories_of
from .rules.weight_class import bucket_weight_class

# Optional athlete fields carried on each row for export columns.
EXTRA_FIELDS = (
    "member_id",
    "birth_place",
    "region",
    "address",
    "phone",
    "email",
    "parent_guardian",
    "parent_phone",
    "school_name",
    "nisn",
    "nik",
)


@dataclass
class RosterRow:
    athlete_id: int
    name: str
    birth_date: str
    gender: str
    weight: float
    rank: str
    club_name: str
    age_category: str
    weight_class: str
    conflicts: list[EligibilityConflict] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def has_errors(self) -> bool:
        return any(conflict.is_error for conflict in self.conflicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "athlete_id": self.athlete_id,
            "name": self.name,
            "birth_date": self.birth_date,
            "gender": self.gender,
            "weight": self.weight,
            "rank": self.rank,
            "club_name": self.club_name,
            "age_category": self.age_category,
            "weight_class": self.weight_class,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            **self.extra,
        }


@dataclass(frozen=True)
class RosterSummary:
    total: int
    male: int
    female: int
    by_category: dict[str, int]
    with_conflicts: int
    with_errors: int


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _club_name(athlete: Any, clubs_by_id: Optional[Mapping[int, Any]]) -> str:
    club_id = _get(athlete, "club_id")
    if club_id is None or not clubs_by_id:
        return ""
    club = clubs_by_id.get(club_id)
    return str(_get(club, "name", "") or "") if club is not None else ""


def _base_row(
    athlete: Any,
    age_category: str,
    weight_class: str,
    conflicts: list[EligibilityConflict],
    clubs_by_id: Optional[Mapping[int, Any]],
) -> RosterRow:
    athlete_id = _get(athlete, "athlete_id")
    if athlete_id is None:
        athlete_id = _get(athlete, "id")
    return RosterRow(
        athlete_id=int(athlete_id),
        name=str(_get(athlete, "name", "") or ""),
        birth_date=str(_get(athlete, "birth_date", "") or ""),
        gender=str(_get(athlete, "gender", "") or ""),
        weight=float(_get(athlete, "weight", 0.0) or 0.0),
        rank=str(_get(athlete, "rank", "") or ""),
        club_name=_club_name(athlete, clubs_by_id),
        age_category=age_category,
        weight_class=weight_class,
        conflicts=conflicts,
        extra={name: _get(athlete, name) for name in EXTRA_FIELDS},
    )


def build_roster_rows(
    entries: Iterable[Any],
    athletes_by_id: Mapping[int, Any],
    snapshot: Any,
    reference_year: Optional[int] = None,
    clubs_by_id: Optional[Mapping[int, Any]] = None,
) -> list[RosterRow]:
    categories = categories_of(snapshot)
    rows: list[RosterRow] = []
    for entry in entries:
        athlete_id = int(_get(entry, "athlete_id"))
        athlete = athletes_by_id.get(athlete_id)
        if athlete is None:
            raise KeyError(f"Athlete with ID {athlete_id} not found")
        label = str(_get(entry, "weight_class", "") or "")
        selected = _get(entry, "category")
        age_category = resolve_age_category(
            _get(athlete, "birth_date"),
            _get(athlete, "gender"),
            categories,
            reference_year,
        )
        conflicts = validate_eligibility(athlete, snapshot, reference_year)
        conflicts.extend(
            check_roster_assignment(
                athlete,
                snapshot,
                selected,
                _tournament_weight_class(categories, selected or age_category, label),
                reference_year,
            )
        )
        rows.append(_base_row(athlete, age_category, label, conflicts, clubs_by_id))
    return rows


def _tournament_weight_class(categories: list[Any], category_name: str, label: str) -> Any:
    for category in categories:
        if _get(category, "name") != category_name:
            continue
        for weight_class in _get(category, "weight_classes", None) or ():
            if _get(weight_class, "label") == label:
                return weight_class
    return label


def build_pool_rows(
    athletes: Iterable[Any],
    ruleset: Any,
    reference_year: Optional[int] = None,
    clubs_by_id: Optional[Mapping[int, Any]] = None,
) -> list[RosterRow]:
    categories = categories_of(ruleset)
    rows: list[RosterRow] = []
    for athlete in athletes:
        if _get(athlete, "athlete_id") is None and _get(athlete, "id") is None:
            continue
        age_category = resolve_age_category(
            _get(athlete, "birth_date"),
            _get(athlete, "gender"),
            categories,
            reference_year,
        )
        weight_class = bucket_weight_class(_get(athlete, "gender"), _get(athlete, "weight"))
        conflicts = validate_eligibility(athlete, ruleset, reference_year)
        rows.append(_base_row(athlete, age_category, weight_class, conflicts, clubs_by_id))
    return rows


def group_roster_by_category(
    rows: Iterable[RosterRow],
    categories: Any,
) -> list[tuple[str, list[tuple[str, list[RosterRow]]]]]:
    """Group rows as ``[(category, [(weight_class, rows), ...]), ...]``.

    Categories follow ruleset order and empty ones are dropped. Rows whose category is not
    in the ruleset land in a trailing ``Unclassified`` group.
    """
    names = [str(_get(category, "name", "")) for category in categories_of(categories)]
    by_category: dict[str, dict[str, list[RosterRow]]] = {}
    for row in rows:
        key = row.age_category if row.age_category in names else UNCLASSIFIED
        by_category.setdefault(key, {}).setdefault(row.weight_class, []).append(row)

    ordered = [name for name in names if name in by_category]
    if UNCLASSIFIED in by_category and UNCLASSIFIED not in ordered:
        ordered.append(UNCLASSIFIED)

    out: list[tuple[str, list[tuple[str, list[RosterRow]]]]] = []
    for name in ordered:
        weight_groups = by_category[name]
        out.append(
            (
                name,
                [
                    (label, sorted(weight_groups[label], key=lambda r: r.name.lower()))
                    for label in sorted(weight_groups)
                ],
            )
        )
    return out


def summarize_roster(rows: Iterable[RosterRow]) -> RosterSummary:
    rows = list(rows)
    by_category = Counter(row.age_category for row in rows)
    return RosterSummary(
        total=len(rows),
        male=sum(1 for row in rows if row.gender == "male"),
        female=sum(1 for row in rows if row.gender == "female"),
        by_category=dict(sorted(by_category.items())),
        with_conflicts=sum(1 for row in rows if row.has_conflicts),
        with_errors=sum(1 for row in rows if row.has_errors),
    )


def roster_frame(rows: Iterable[RosterRow]) -> pd.DataFrame:
    records = []
    for row in rows:
        records.append(
            {
                "athlete_id": row.athlete_id,
                "name": row.name,
                "birth_date": row.birth_date,
                "gender": row.gender,
                "weight": row.weight,
                "rank": row.rank,
                "club": row.club_name,
                "age_category": row.age_category,
                "weight_class": row.weight_class,
                "conflicts": len(row.conflicts),
                "errors": sum(1 for c in row.conflicts if c.is_error),
                "flag": "ERROR" if row.has_errors else ("warning" if row.has_conflicts else "ok"),
                **row.extra,
            }
        )
    columns = [
        "athlete_id",
        "name",
        "birth_date",
        "gender",
        "weight",
        "rank",
        "club",
        "age_category",
        "weight_class",
        "conflicts",
        "errors",
        "flag",
        *EXTRA_FIELDS,
    ]
    return pd.DataFrame(records, columns=columns)
