from __future__ import annotations

from dataclasses import asdict, dataclass, fields
import logging
from pathlib import Path
from typing import Optional

from .storage import iter_json_records, next_record_id, now_iso, parse_record_id, read_json, record_path, write_json

logger = logging.getLogger(__name__)


@dataclass
class Club:
    name: str
    club_id: Optional[int] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    location: Optional[str] = None
    logo_path: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def normalize(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("Club name is required.")
        for name in ("contact_person", "contact_phone", "contact_email", "location", "logo_path"):
            value = getattr(self, name)
            if value is not None:
                value = str(value).strip() or None
            setattr(self, name, value)
        if self.contact_email is not None and "@" not in self.contact_email:
            raise ValueError("contact_email is not a valid address.")

    def to_dict(self) -> dict:
        self.normalize()
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "Club":
        known = {f.name for f in fields(Club)}
        values = {key: value for key, value in data.items() if key in known}
        if "club_id" not in values and "id" in data:
            values["club_id"] = data.get("id")
        values["club_id"] = parse_record_id(values.get("club_id"))
        club = Club(**values)
        club.normalize()
        return club


@dataclass
class ClubStore:
    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, club_id: int) -> Path:
        return record_path(self.root, club_id)

    def list_clubs(self) -> list[Club]:
        clubs: list[Club] = []
        for data in iter_json_records(self.root):
            try:
                club = Club.from_dict(data)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping invalid club record %s: %s", data.get("club_id"), exc)
                continue
            if club.club_id is not None:
                clubs.append(club)
        clubs.sort(key=lambda c: c.name.lower())
        return clubs

    def clubs_by_id(self) -> dict[int, Club]:
        return {club.club_id: club for club in self.list_clubs() if club.club_id is not None}

    def create(self, club: Club) -> Club:
        club.normalize()
        club.club_id = next_record_id(self.root)
        club.created_at = now_iso()
        club.updated_at = club.created_at
        write_json(self.path_for(club.club_id), club.to_dict())
        logger.info("Created club %s (%s)", club.club_id, club.name)
        return club

    def load(self, club_id: int) -> Club:
        path = self.path_for(club_id)
        if not path.exists():
            raise FileNotFoundError(f"Club not found: {club_id}")
        club = Club.from_dict(read_json(path))
        club.club_id = int(club_id)
        return club

    def update(self, club: Club) -> Club:
        if club.club_id is None or not self.path_for(club.club_id).exists():
            raise FileNotFoundError(f"Club not found: {club.club_id}")
        club.updated_at = now_iso()
        write_json(self.path_for(club.club_id), club.to_dict())
        return club

    def delete(self, club_id: int) -> bool:
        path = self.path_for(club_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted club %s", club_id)
        return True
