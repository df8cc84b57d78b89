from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Literal, Optional

from .age_category import UNCLASSIFIED, age_on_cutoff, resolve_age_category
from .specs import categories_of
from .weight_class import bucket_weight_class, division_limit, upper_bound

ConflictType = Literal["age", "weight", "rank"]
Severity = Literal["error", "warning"]

CONFLICT_TYPES: tuple[str, ...] = ("age", "weight", "rank")


@dataclass(frozen=True)
class EligibilityConflict:
    athlete_id: int
    type: ConflictType
    severity: Severity
    message: str
    details: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def validate_eligibility(
    athlete: Any,
    ruleset: Any,
    reference_year: Optional[int] = None,
) -> list[EligibilityConflict]:
    athlete_id = _athlete_id(athlete)
    if athlete_id is None:
        return []

    conflicts: list[EligibilityConflict] = []
    conflicts.extend(_validate_age_category(athlete, athlete_id, ruleset, reference_year))
    conflicts.extend(_validate_weight_class(athlete, athlete_id))
    return conflicts


def validate_athletes(
    athletes: Iterable[Any],
    ruleset: Any,
    reference_year: Optional[int] = None,
) -> dict[int, list[EligibilityConflict]]:
    out: dict[int, list[EligibilityConflict]] = {}
    for athlete in athletes:
        athlete_id = _athlete_id(athlete)
        if athlete_id is None:
            continue
        out[athlete_id] = validate_eligibility(athlete, ruleset, reference_year)
    return out


def check_roster_assignment(
    athlete: Any,
    ruleset: Any,
    category_name: Optional[str],
    weight_class: Any,
    reference_year: Optional[int] = None,
) -> list[EligibilityConflict]:
    """Warnings for an athlete placed in a tournament category and weight class.

    ``weight_class`` is either a ``WeightClass`` (or mapping with ``limit``/``label``) or a
    bare label string, in which case the limit is read from the number in the label.
    """
    athlete_id = _athlete_id(athlete)
    if athlete_id is None:
        return []

    conflicts: list[EligibilityConflict] = []
    if category_name:
        resolved = resolve_age_category(
            _profile_get(athlete, "birth_date"),
            _profile_get(athlete, "gender"),
            categories_of(ruleset),
            reference_year,
        )
        if resolved != category_name:
            conflicts.append(
                EligibilityConflict(
                    athlete_id=athlete_id,
                    type="age",
                    severity="warning",
                    message="Age category mismatch",
                    details=f"Athlete is {resolved}, selected {category_name}",
                )
            )

    limit, label = _weight_class_limit(weight_class)
    weight = _as_float(_profile_get(athlete, "weight"))
    if limit is not None and weight is not None and weight > limit:
        conflicts.append(
            EligibilityConflict(
                athlete_id=athlete_id,
                type="weight",
                severity="warning",
                message="Weight exceeds class limit",
                details=f"Weight {_fmt_kg(weight)}kg > {_fmt_kg(limit)}kg ({label})",
            )
        )
    return conflicts


def _validate_age_category(
    athlete: Any,
    athlete_id: int,
    ruleset: Any,
    reference_year: Optional[int],
) -> list[EligibilityConflict]:
    birth_date = _profile_get(athlete, "birth_date")
    category = resolve_age_category(
        birth_date,
        _profile_get(athlete, "gender"),
        categories_of(ruleset),
        reference_year,
    )
    if category != UNCLASSIFIED:
        return []

    age = age_on_cutoff(birth_date, reference_year)
    if age is not None:
        details = f"Athlete age ({age}) doesn't match any category in the active ruleset"
    else:
        details = "Invalid birth date"
    return [
        EligibilityConflict(
            athlete_id=athlete_id,
            type="age",
            severity="error",
            message="No matching age category",
            details=details,
        )
    ]


def _validate_weight_class(athlete: Any, athlete_id: int) -> list[EligibilityConflict]:
    weight = _as_float(_profile_get(athlete, "weight"))
    if weight is None or weight <= 0:
        return []

    weight_class = bucket_weight_class(_profile_get(athlete, "gender"), weight)
    if weight_class == UNCLASSIFIED:
        return [
            EligibilityConflict(
                athlete_id=athlete_id,
                type="weight",
                severity="error",
                message="Weight class unclassified",
                details=f"Weight ({_fmt_kg(weight)}kg) doesn't fit any standard weight class",
            )
        ]

    parsed = division_limit(weight_class)
    if parsed is None:
        return []
    limit, open_ended = parsed
    if open_ended:
        return []
    # Only fires when the label and the bucketing table disagree.
    if weight > limit:
        return [
            EligibilityConflict(
                athlete_id=athlete_id,
                type="weight",
                severity="error",
                message="Weight exceeds class limit",
                details=(
                    f"Current weight ({_fmt_kg(weight)}kg) exceeds {weight_class} limit "
                    f"by {weight - limit:.1f}kg"
                ),
            )
        ]
    return []


def _weight_class_limit(weight_class: Any) -> tuple[Optional[float], str]:
    if weight_class is None:
        return None, ""
    if isinstance(weight_class, str):
        return upper_bound(weight_class), weight_class
    label = str(_profile_get(weight_class, "label") or "")
    limit = _as_float(_profile_get(weight_class, "limit"))
    parsed = division_limit(label)
    # an open "+N" class stored with N as its limit has no real ceiling
    if parsed is not None and parsed[1] and (limit is None or limit <= parsed[0]):
        return None, label
    if limit is None:
        limit = upper_bound(label)
    return limit, label


def _athlete_id(athlete: Any) -> Optional[int]:
    value = _profile_get(athlete, "athlete_id")
    if value is None:
        value = _profile_get(athlete, "id")
    if value in (None, "", 0):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _profile_get(profile: Any, key: str) -> Any:
    if profile is None:
        return None
    if isinstance(profile, dict):
        return profile.get(key)
    return getattr(profile, key, None)


def _as_float(value: Any) -> Optional[float]:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _fmt_kg(value: float) -> str:
    return f"{value:g}"
