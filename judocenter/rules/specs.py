from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


CATEGORY_GENDERS = ("M", "F", "MIXED")
MAX_CATEGORY_AGE = 150


@dataclass(frozen=True)
class WeightClass:
    limit: float
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {"limit": self.limit, "label": self.label}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "WeightClass":
        return WeightClass(
            limit=float(data.get("limit", 0.0)),
            label=str(data.get("label", "")).strip(),
        )


@dataclass
class AgeCategory:
    name: str
    min_age: int
    max_age: int
    gender: str = "MIXED"
    category_id: Optional[int] = None

    def covers(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age

    def normalize(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("Age category name is required.")
        self.gender = str(self.gender or "").strip().upper()
        if self.gender not in CATEGORY_GENDERS:
            raise ValueError(f"Age category '{self.name}' gender must be one of {', '.join(CATEGORY_GENDERS)}.")
        self.min_age = int(self.min_age)
        self.max_age = int(self.max_age)
        if self.min_age < 0:
            raise ValueError(f"Age category '{self.name}' min_age cannot be negative.")
        if self.max_age > MAX_CATEGORY_AGE:
            raise ValueError(f"Age category '{self.name}' max_age cannot exceed {MAX_CATEGORY_AGE}.")
        if self.min_age > self.max_age:
            raise ValueError(f"Age category '{self.name}' min_age is greater than max_age.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "name": self.name,
            "min_age": self.min_age,
            "max_age": self.max_age,
            "gender": self.gender,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "AgeCategory":
        return AgeCategory(
            name=str(data.get("name", "")).strip(),
            min_age=_as_int(data.get("min_age")) or 0,
            max_age=_as_int(data.get("max_age")) or 0,
            gender=str(data.get("gender", "MIXED")).strip().upper(),
            category_id=_as_int(data.get("category_id", data.get("id"))),
        )


@dataclass
class Ruleset:
    name: str
    description: str = ""
    categories: list[AgeCategory] = field(default_factory=list)
    ruleset_id: Optional[int] = None
    is_active: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def normalize(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("Ruleset name is required.")
        self.description = (self.description or "").strip()
        seen: set[str] = set()
        for category in self.categories:
            category.normalize()
            key = category.name.lower()
            if key in seen:
                raise ValueError(f"Duplicate age category name in ruleset '{self.name}': {category.name}")
            seen.add(key)
        # Category ids are positional within a ruleset; snapshots key weight classes on them.
        for index, category in enumerate(self.categories, start=1):
            category.category_id = index

    def get_category(self, name: str) -> Optional[AgeCategory]:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleset_id": self.ruleset_id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "categories": [category.to_dict() for category in self.categories],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Ruleset":
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, list):
            raw_categories = data.get("age_categories") if isinstance(data.get("age_categories"), list) else []
        return Ruleset(
            name=str(data.get("name", "")).strip(),
            description=str(data.get("description") or "").strip(),
            categories=[AgeCategory.from_dict(item) for item in raw_categories if isinstance(item, dict)],
            ruleset_id=_as_int(data.get("ruleset_id", data.get("id"))),
            is_active=bool(data.get("is_active", False)),
            created_at=_as_optional_str(data.get("created_at")),
            updated_at=_as_optional_str(data.get("updated_at")),
        )


_BUNDLED_RULESETS_DIR = Path(__file__).resolve().parent / "data"


def bundled_rulesets_dir() -> Path:
    return _BUNDLED_RULESETS_DIR


def load_ruleset_file(path: Path) -> Ruleset:
    loaded = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(loaded, dict):
        raise ValueError(f"Ruleset file must contain a mapping: {path}")
    ruleset = Ruleset.from_dict(loaded)
    ruleset.normalize()
    return ruleset


def load_bundled_rulesets(rulesets_dir: Optional[Path] = None) -> list[Ruleset]:
    root = Path(rulesets_dir or _BUNDLED_RULESETS_DIR)
    rulesets: list[Ruleset] = []
    if not root.exists():
        return rulesets
    for path in sorted(root.glob("*.yaml")):
        try:
            rulesets.append(load_ruleset_file(path))
        except (OSError, ValueError, yaml.YAMLError):
            continue
    return rulesets


def categories_of(ruleset: Any) -> list[Any]:
    """Category list of a Ruleset, a RulesetSnapshot, a mapping, or a bare list."""
    if ruleset is None:
        return []
    if isinstance(ruleset, (list, tuple)):
        return list(ruleset)
    if isinstance(ruleset, dict):
        raw = ruleset.get("categories")
        if not isinstance(raw, list):
            raw = ruleset.get("age_categories")
        return raw if isinstance(raw, list) else []
    raw = getattr(ruleset, "categories", None)
    if raw is None:
        raw = getattr(ruleset, "age_categories", None)
    try:
        return list(raw or [])
    except TypeError:
        return []


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
