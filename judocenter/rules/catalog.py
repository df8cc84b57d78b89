from __future__ import annotations

import copy
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional

from ..storage import iter_json_records, next_record_id, now_iso, parse_record_id, read_json, record_path, write_json
from .specs import AgeCategory, Ruleset, load_bundled_rulesets

logger = logging.getLogger(__name__)


@dataclass
class RulesetCatalog:
    """File-backed rulesets with a single active-ruleset pointer.

    ``is_active`` is never stored on a ruleset record; it is derived from
    ``active_ruleset_id.txt`` on read, so activation is one write and at most one
    ruleset can ever be active.
    """

    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def _active_ruleset_file(self) -> Path:
        return self.root / "active_ruleset_id.txt"

    def path_for(self, ruleset_id: int) -> Path:
        return record_path(self.root, ruleset_id)

    def list_rulesets(self) -> list[Ruleset]:
        active_id = self.get_active_ruleset_id()
        rulesets: list[Ruleset] = []
        for data in iter_json_records(self.root):
            ruleset = Ruleset.from_dict(data)
            if ruleset.ruleset_id is None:
                continue
            ruleset.is_active = ruleset.ruleset_id == active_id
            rulesets.append(ruleset)
        rulesets.sort(key=lambda r: (r.created_at or "", r.ruleset_id or 0), reverse=True)
        return rulesets

    def get(self, ruleset_id: int) -> Ruleset:
        path = self.path_for(ruleset_id)
        if not path.exists():
            raise FileNotFoundError(f"Ruleset not found: {ruleset_id}")
        ruleset = Ruleset.from_dict(read_json(path))
        ruleset.ruleset_id = int(ruleset_id)
        ruleset.is_active = ruleset.ruleset_id == self.get_active_ruleset_id()
        return ruleset

    def create(self, ruleset: Ruleset, activate: Optional[bool] = None) -> Ruleset:
        record = copy.deepcopy(ruleset)
        record.normalize()
        record.ruleset_id = next_record_id(self.root)
        record.created_at = now_iso()
        record.updated_at = record.created_at
        write_json(self.path_for(record.ruleset_id), record.to_dict())
        logger.info("Created ruleset %s (%s)", record.ruleset_id, record.name)
        should_activate = ruleset.is_active if activate is None else activate
        if should_activate:
            self.set_active_ruleset(record.ruleset_id)
        return self.get(record.ruleset_id)

    def update(
        self,
        ruleset_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        categories: Optional[list[AgeCategory]] = None,
    ) -> Ruleset:
        record = self.get(ruleset_id)
        if name is not None:
            record.name = name
        if description is not None:
            record.description = description
        if categories is not None:
            record.categories = copy.deepcopy(list(categories))
        record.normalize()
        record.updated_at = now_iso()
        write_json(self.path_for(ruleset_id), record.to_dict())
        return self.get(ruleset_id)

    def delete(self, ruleset_id: int) -> bool:
        path = self.path_for(ruleset_id)
        if not path.exists():
            return False
        path.unlink()
        if self.get_active_ruleset_id() == int(ruleset_id):
            self.clear_active_ruleset()
        logger.info("Deleted ruleset %s", ruleset_id)
        return True

    def set_active_ruleset(self, ruleset_id: int) -> Ruleset:
        if not self.path_for(ruleset_id).exists():
            raise FileNotFoundError(f"Ruleset not found: {ruleset_id}")
        self._active_ruleset_file.write_text(str(int(ruleset_id)), encoding="utf-8")
        logger.info("Active ruleset is now %s", ruleset_id)
        return self.get(ruleset_id)

    def clear_active_ruleset(self) -> None:
        self._active_ruleset_file.unlink(missing_ok=True)

    def get_active_ruleset_id(self) -> Optional[int]:
        if not self._active_ruleset_file.exists():
            return None
        return parse_record_id(self._active_ruleset_file.read_text(encoding="utf-8").strip())

    def get_active_ruleset(self) -> Optional[Ruleset]:
        active_id = self.get_active_ruleset_id()
        if active_id is None:
            return None
        try:
            return self.get(active_id)
        except FileNotFoundError:
            self.clear_active_ruleset()
            return None

    def seed_defaults(self, rulesets_dir: Optional[Path] = None) -> list[Ruleset]:
        if any(self.root.glob("*.json")):
            return []
        created = [self.create(ruleset) for ruleset in load_bundled_rulesets(rulesets_dir)]
        if created and self.get_active_ruleset_id() is None:
            self.set_active_ruleset(created[0].ruleset_id)
        return created
