from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from .rules.specs import Ruleset, WeightClass
from .storage import SCHEMA_VERSION, next_record_id, now_iso, record_path

logger = logging.getLogger(__name__)


class SnapshotWeightClass(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit: float
    label: str


class SnapshotCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: Optional[int] = None
    name: str
    min_age: int
    max_age: int
    gender: str = "MIXED"
    weight_classes: tuple[SnapshotWeightClass, ...] = ()

    def find_weight_class(self, label: str) -> Optional[SnapshotWeightClass]:
        for weight_class in self.weight_classes:
            if weight_class.label == label:
                return weight_class
        return None


class RulesetSnapshot(BaseModel):
    """Ruleset as it stood when a tournament was created, plus its weight classes.

    Frozen: later edits to the source ruleset never reach a tournament.
    """

    model_config = ConfigDict(frozen=True)

    ruleset_id: Optional[int] = None
    ruleset_name: str
    description: str = ""
    age_categories: tuple[SnapshotCategory, ...] = ()

    @property
    def categories(self) -> list[SnapshotCategory]:
        return list(self.age_categories)

    @property
    def weight_class_count(self) -> int:
        return sum(len(category.weight_classes) for category in self.age_categories)

    def get_category(self, name: str) -> Optional[SnapshotCategory]:
        for category in self.age_categories:
            if category.name == name:
                return category
        return None

    @staticmethod
    def capture(
        ruleset: Ruleset,
        weight_classes_by_category: Optional[Mapping[str, Iterable[Any]]] = None,
    ) -> "RulesetSnapshot":
        by_name = dict(weight_classes_by_category or {})
        known = {category.name for category in ruleset.categories}
        unknown = sorted(set(by_name) - known)
        if unknown:
            raise ValueError(f"Unknown age categories for ruleset '{ruleset.name}': {', '.join(unknown)}")
        categories = []
        for category in ruleset.categories:
            weight_classes = tuple(_snapshot_weight_class(item) for item in by_name.get(category.name, ()))
            categories.append(
                SnapshotCategory(
                    category_id=category.category_id,
                    name=category.name,
                    min_age=category.min_age,
                    max_age=category.max_age,
                    gender=category.gender,
                    weight_classes=weight_classes,
                )
            )
        return RulesetSnapshot(
            ruleset_id=ruleset.ruleset_id,
            ruleset_name=ruleset.name,
            description=ruleset.description,
            age_categories=tuple(categories),
        )


def _snapshot_weight_class(item: Any) -> SnapshotWeightClass:
    if isinstance(item, SnapshotWeightClass):
        return item
    if isinstance(item, WeightClass):
        weight_class = item
    elif isinstance(item, dict):
        weight_class = WeightClass.from_dict(item)
    else:
        raise ValueError(f"Unsupported weight class value: {item!r}")
    if not weight_class.label:
        raise ValueError("Weight class label is required.")
    if weight_class.limit <= 0:
        raise ValueError(f"Weight class '{weight_class.label}' limit must be greater than 0.")
    return SnapshotWeightClass(limit=weight_class.limit, label=weight_class.label)


class RosterEntry(BaseModel):
    athlete_id: int
    weight_class: str
    category: Optional[str] = None

    @field_validator("weight_class")
    @classmethod
    def weight_class_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("weight_class is required")
        return value


class Tournament(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    schema_version: int = SCHEMA_VERSION
    tournament_id: Optional[int] = None
    name: str
    date: str  # YYYY-MM-DD
    location: Optional[str] = None
    ruleset_snapshot: RulesetSnapshot
    roster: list[RosterEntry] = Field(default_factory=list)
    created_at: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Tournament name is required")
        return value

    @field_validator("date")
    @classmethod
    def iso_date(cls, value: str) -> str:
        return date_type.fromisoformat(value.strip()).isoformat()

    @property
    def reference_year(self) -> int:
        return int(self.date[:4])

    def roster_ids(self) -> list[int]:
        return [entry.athlete_id for entry in self.roster]


@dataclass
class TournamentStore:
    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, tournament_id: int) -> Path:
        return record_path(self.root, tournament_id)

    def create_tournament(
        self,
        name: str,
        date: str,
        ruleset: Ruleset,
        weight_classes_by_category: Optional[Mapping[str, Iterable[Any]]] = None,
        location: Optional[str] = None,
    ) -> Tournament:
        snapshot = RulesetSnapshot.capture(ruleset, weight_classes_by_category)
        if snapshot.weight_class_count == 0:
            raise ValueError("Define at least one weight class for the tournament.")
        tournament = Tournament(
            tournament_id=next_record_id(self.root),
            name=name,
            date=date,
            location=(location or "").strip() or None,
            ruleset_snapshot=snapshot,
            created_at=now_iso(),
        )
        self.save(tournament)
        logger.info(
            "Created tournament %s (%s) from ruleset %s",
            tournament.tournament_id,
            tournament.name,
            snapshot.ruleset_name,
        )
        return tournament

    def list_tournaments(self) -> list[Tournament]:
        tournaments: list[Tournament] = []
        for path in self.root.glob("*.json"):
            try:
                tournaments.append(Tournament.model_validate(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable tournament %s: %s", path, exc)
        tournaments.sort(key=lambda t: (t.date, t.tournament_id or 0), reverse=True)
        return tournaments

    def load(self, tournament_id: int) -> Tournament:
        path = self.path_for(tournament_id)
        if not path.exists():
            raise FileNotFoundError(f"Tournament not found: {tournament_id}")
        return Tournament.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def save(self, tournament: Tournament) -> None:
        if tournament.tournament_id is None:
            raise ValueError("Tournament must be created before it can be saved.")
        path = self.path_for(tournament.tournament_id)
        path.write_text(tournament.model_dump_json(indent=2), encoding="utf-8")

    def update(
        self,
        tournament_id: int,
        name: Optional[str] = None,
        date: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Tournament:
        tournament = self.load(tournament_id)
        if name is not None:
            tournament.name = name
        if date is not None:
            tournament.date = date
        if location is not None:
            tournament.location = location.strip() or None
        self.save(tournament)
        return tournament

    def delete(self, tournament_id: int) -> bool:
        path = self.path_for(tournament_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted tournament %s", tournament_id)
        return True

    def add_athlete(
        self,
        tournament_id: int,
        athlete_id: int,
        weight_class: str,
        category: Optional[str] = None,
    ) -> Tournament:
        tournament = self.load(tournament_id)
        if int(athlete_id) in tournament.roster_ids():
            return tournament
        if category is not None and tournament.ruleset_snapshot.get_category(category) is None:
            raise ValueError(f"Unknown age category for this tournament: {category}")
        tournament.roster.append(RosterEntry(athlete_id=athlete_id, weight_class=weight_class, category=category))
        self.save(tournament)
        return tournament

    def remove_athlete(self, tournament_id: int, athlete_id: int) -> bool:
        tournament = self.load(tournament_id)
        before = len(tournament.roster)
        tournament.roster = [entry for entry in tournament.roster if entry.athlete_id != int(athlete_id)]
        if len(tournament.roster) == before:
            return False
        self.save(tournament)
        return True

    def get_roster(self, tournament_id: int) -> list[RosterEntry]:
        return list(self.load(tournament_id).roster)

    def clear_roster(self, tournament_id: int) -> None:
        tournament = self.load(tournament_id)
        tournament.roster = []
        self.save(tournament)

    def save_roster(self, tournament_id: int, entries: Iterable[Any]) -> list[RosterEntry]:
        parsed: list[RosterEntry] = []
        for raw in entries:
            entry = raw if isinstance(raw, RosterEntry) else RosterEntry.model_validate(raw)
            if entry.athlete_id in {e.athlete_id for e in parsed}:
                continue
            parsed.append(entry)
        tournament = self.load(tournament_id)
        tournament.roster = parsed
        self.save(tournament)
        logger.info("Saved roster of %d athletes for tournament %s", len(parsed), tournament_id)
        return list(parsed)
