from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import date
import logging
from pathlib import Path
import re
from typing import Any, Iterable, Optional

from .storage import iter_json_records, next_record_id, now_iso, parse_record_id, read_json, record_path, write_json

logger = logging.getLogger(__name__)


GENDERS = ("male", "female")

RANKS = (
    "White (6th Kyu)",
    "Yellow (5th Kyu)",
    "Orange (4th Kyu)",
    "Green (3rd Kyu)",
    "Blue (2nd Kyu)",
    "Brown (1st Kyu)",
    "Black (1st Dan)",
    "Black (2nd Dan)",
    "Black (3rd Dan)",
    "Black (4th Dan)",
    "Black (5th Dan)",
    "Black (6th Dan)",
    "Black (7th Dan)",
    "Black (8th Dan)",
    "Black (9th Dan)",
    "Black (10th Dan)",
)

ACTIVITY_STATUSES = ("Constant", "Intermittent", "Dormant")
COMPETITIVE_STATUSES = ("Constant", "Intermittent")

_PHONE_RE = re.compile(r"^[\d\s\-+()]*$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# field name -> (min length, max length) for optional free-text fields
_TEXT_LIMITS: dict[str, tuple[int, int]] = {
    "birth_place": (2, 100),
    "region": (2, 100),
    "address": (0, 500),
    "parent_guardian": (0, 200),
    "school_name": (0, 200),
}


def _parse_iso_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _clean_optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _validate_phone(value: Optional[str], field_name: str) -> None:
    if value is None:
        return
    if len(value) > 50:
        raise ValueError(f"{field_name} is too long.")
    if not _PHONE_RE.match(value) or sum(ch.isdigit() for ch in value) < 3:
        raise ValueError(f"{field_name} must contain at least 3 digits.")


@dataclass
class Athlete:
    name: str
    birth_date: str
    gender: str = "male"
    weight: float = 0.0
    rank: str = RANKS[0]
    club_id: Optional[int] = None
    athlete_id: Optional[int] = None
    activity_status: str = "Constant"
    member_id: Optional[str] = None
    first_joined_date: Optional[str] = None
    birth_place: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    parent_guardian: Optional[str] = None
    parent_phone: Optional[str] = None
    school_name: Optional[str] = None
    nisn: Optional[str] = None
    nik: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def birth_year(self) -> Optional[int]:
        dob = _parse_iso_date(self.birth_date)
        return dob.year if dob is not None else None

    def normalize(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("name is required.")
        dob = _parse_iso_date(self.birth_date)
        if dob is None:
            raise ValueError("birth_date must use YYYY-MM-DD.")
        if dob > date.today():
            raise ValueError("birth_date cannot be in the future.")
        self.birth_date = dob.isoformat()
        self.gender = str(self.gender or "").strip().lower()
        if self.gender not in GENDERS:
            raise ValueError("gender must be 'male' or 'female'.")
        try:
            self.weight = float(self.weight)
        except (TypeError, ValueError) as exc:
            raise ValueError("weight must be a number.") from exc
        if self.weight <= 0:
            raise ValueError("weight must be greater than 0.")
        self.rank = (self.rank or "").strip()
        if not self.rank:
            raise ValueError("rank is required.")
        self.club_id = parse_record_id(self.club_id)
        if self.activity_status not in ACTIVITY_STATUSES:
            self.activity_status = "Constant"

        for name in (
            "member_id",
            "first_joined_date",
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
        ):
            setattr(self, name, _clean_optional(getattr(self, name)))

        for name, (low, high) in _TEXT_LIMITS.items():
            value = getattr(self, name)
            if value is None:
                continue
            if len(value) < low:
                raise ValueError(f"{name} must be at least {low} characters.")
            if len(value) > high:
                raise ValueError(f"{name} is too long.")
        _validate_phone(self.phone, "phone")
        _validate_phone(self.parent_phone, "parent_phone")
        if self.email is not None:
            if len(self.email) > 255:
                raise ValueError("email is too long.")
            if not _EMAIL_RE.match(self.email):
                raise ValueError("email is not a valid address.")
        if self.first_joined_date is not None:
            joined = _parse_iso_date(self.first_joined_date)
            if joined is None:
                raise ValueError("first_joined_date must use YYYY-MM-DD.")
            self.first_joined_date = joined.isoformat()

    def to_dict(self) -> dict:
        self.normalize()
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "Athlete":
        known = {f.name for f in fields(Athlete)}
        values = {key: value for key, value in data.items() if key in known}
        if "athlete_id" not in values and "id" in data:
            values["athlete_id"] = data.get("id")
        values["athlete_id"] = parse_record_id(values.get("athlete_id"))
        athlete = Athlete(**values)
        athlete.normalize()
        return athlete


@dataclass(frozen=True)
class PoolStatistics:
    total_pool: int
    competitive_pool: int
    male_count: int
    female_count: int


@dataclass
class AthleteStore:
    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, athlete_id: int) -> Path:
        return record_path(self.root, athlete_id)

    def list_athletes(self) -> list[Athlete]:
        athletes: list[Athlete] = []
        for data in iter_json_records(self.root):
            try:
                athlete = Athlete.from_dict(data)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping invalid athlete record %s: %s", data.get("athlete_id"), exc)
                continue
            if athlete.athlete_id is not None:
                athletes.append(athlete)
        athletes.sort(key=lambda a: a.name.lower())
        return athletes

    def create(self, athlete: Athlete) -> Athlete:
        athlete.normalize()
        self._check_unique(athlete)
        athlete.athlete_id = next_record_id(self.root)
        athlete.created_at = now_iso()
        athlete.updated_at = athlete.created_at
        self.save(athlete)
        logger.info("Created athlete %s (%s)", athlete.athlete_id, athlete.name)
        return athlete

    def load(self, athlete_id: int) -> Athlete:
        path = self.path_for(athlete_id)
        if not path.exists():
            raise FileNotFoundError(f"Athlete not found: {athlete_id}")
        athlete = Athlete.from_dict(read_json(path))
        athlete.athlete_id = int(athlete_id)
        return athlete

    def find_by_ids(self, athlete_ids: Iterable[int]) -> list[Athlete]:
        out: list[Athlete] = []
        for athlete_id in dict.fromkeys(athlete_ids):
            try:
                out.append(self.load(athlete_id))
            except FileNotFoundError:
                continue
        return out

    def save(self, athlete: Athlete) -> None:
        if athlete.athlete_id is None:
            raise ValueError("Athlete must be created before it can be saved.")
        write_json(self.path_for(athlete.athlete_id), athlete.to_dict())

    def update(self, athlete: Athlete) -> Athlete:
        if athlete.athlete_id is None or not self.path_for(athlete.athlete_id).exists():
            raise FileNotFoundError(f"Athlete not found: {athlete.athlete_id}")
        athlete.normalize()
        self._check_unique(athlete)
        athlete.updated_at = now_iso()
        self.save(athlete)
        return athlete

    def delete(self, athlete_id: int) -> bool:
        path = self.path_for(athlete_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted athlete %s", athlete_id)
        return True

    def pool_statistics(self) -> PoolStatistics:
        athletes = self.list_athletes()
        return PoolStatistics(
            total_pool=len(athletes),
            competitive_pool=sum(1 for a in athletes if a.activity_status in COMPETITIVE_STATUSES),
            male_count=sum(1 for a in athletes if a.gender == "male"),
            female_count=sum(1 for a in athletes if a.gender == "female"),
        )

    def _check_unique(self, athlete: Athlete) -> None:
        for other in self.list_athletes():
            if other.athlete_id == athlete.athlete_id:
                continue
            if other.name.lower() == athlete.name.lower() and other.birth_date == athlete.birth_date:
                raise ValueError(f"An athlete named {athlete.name} born {athlete.birth_date} already exists.")
            if athlete.member_id and other.member_id == athlete.member_id:
                raise ValueError(f"member_id already in use: {athlete.member_id}")
