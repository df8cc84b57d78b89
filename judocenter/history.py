"""Per-athlete rank promotions and competition medals.

Each athlete gets one JSON document under ``history/<athlete_id>.json`` holding both
lists. Proof images (grading certificates, medal photos) are copied into the
``dossier/`` vault next to the history directory and referenced by a path relative to it.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date
import logging
from pathlib import Path, PurePosixPath
import shutil
from typing import Any, Iterable, Optional

from .storage import parse_record_id, read_json, record_path, write_json

logger = logging.getLogger(__name__)

MEDALS = ("Gold", "Silver", "Bronze")

VAULT_DIR = "dossier"
CERTIFICATES = "certificates"
MEDAL_PHOTOS = "medals"
PROOF_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")
MAX_PROOF_BYTES = 1024 * 1024


def _iso_date(value: Any, field_name: str) -> str:
    text = str(value or "").strip()
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError as exc:
        raise ValueError(f"{field_name} must use YYYY-MM-DD.") from exc


@dataclass
class Promotion:
    rank: str
    promotion_date: str
    notes: Optional[str] = None
    promotion_id: Optional[int] = None
    proof_image_path: Optional[str] = None

    def normalize(self) -> None:
        self.rank = (self.rank or "").strip()
        if not self.rank:
            raise ValueError("rank is required.")
        self.promotion_date = _iso_date(self.promotion_date, "promotion_date")
        self.notes = (self.notes or "").strip() or None

    @staticmethod
    def from_dict(data: dict) -> "Promotion":
        promotion = Promotion(
            rank=data.get("rank", ""),
            promotion_date=data.get("promotion_date") or data.get("date", ""),
            notes=data.get("notes"),
            promotion_id=parse_record_id(data.get("promotion_id")),
            proof_image_path=data.get("proof_image_path") or None,
        )
        promotion.normalize()
        return promotion


@dataclass
class Medal:
    medal: str
    tournament_name: str
    medal_date: str
    category: Optional[str] = None
    medal_id: Optional[int] = None
    proof_image_path: Optional[str] = None

    def normalize(self) -> None:
        self.medal = (self.medal or "").strip().capitalize()
        if self.medal not in MEDALS:
            raise ValueError(f"medal must be one of: {', '.join(MEDALS)}")
        self.tournament_name = (self.tournament_name or "").strip()
        if not self.tournament_name:
            raise ValueError("tournament_name is required.")
        self.medal_date = _iso_date(self.medal_date, "medal_date")
        self.category = (self.category or "").strip() or None

    @staticmethod
    def from_dict(data: dict) -> "Medal":
        medal = Medal(
            medal=data.get("medal", ""),
            tournament_name=data.get("tournament_name", ""),
            medal_date=data.get("medal_date") or data.get("date", ""),
            category=data.get("category"),
            medal_id=parse_record_id(data.get("medal_id")),
            proof_image_path=data.get("proof_image_path") or None,
        )
        medal.normalize()
        return medal


@dataclass
class AthleteHistory:
    athlete_id: int
    promotions: list[Promotion] = field(default_factory=list)
    medals: list[Medal] = field(default_factory=list)
    # highest promotion/medal id handed out so far; ids are never reused
    last_record_id: int = 0

    def to_dict(self) -> dict:
        return {
            "athlete_id": self.athlete_id,
            "last_record_id": self.last_record_id,
            "promotions": [asdict(p) for p in self.promotions],
            "medals": [asdict(m) for m in self.medals],
        }

    @staticmethod
    def from_dict(data: dict) -> "AthleteHistory":
        history = AthleteHistory(
            athlete_id=int(data.get("athlete_id")),
            promotions=[Promotion.from_dict(p) for p in data.get("promotions", []) if isinstance(p, dict)],
            medals=[Medal.from_dict(m) for m in data.get("medals", []) if isinstance(m, dict)],
            last_record_id=parse_record_id(data.get("last_record_id")) or 0,
        )
        known = [p.promotion_id for p in history.promotions] + [m.medal_id for m in history.medals]
        history.last_record_id = max([history.last_record_id, *(i for i in known if i is not None)])
        # documents written before records carried ids
        for promotion in history.promotions:
            if promotion.promotion_id is None:
                promotion.promotion_id = history.issue_id()
        for medal in history.medals:
            if medal.medal_id is None:
                medal.medal_id = history.issue_id()
        return history

    def issue_id(self) -> int:
        self.last_record_id += 1
        return self.last_record_id


def medal_tally(medals: Iterable[Medal]) -> dict[str, int]:
    counts = Counter(m.medal for m in medals)
    return {name: counts.get(name, 0) for name in MEDALS}


def check_proof_image(source: Path) -> Path:
    """Return ``source`` if it is an image the vault accepts, else raise ValueError."""
    source = Path(source)
    if not source.is_file():
        raise FileNotFoundError(f"Proof image not found: {source}")
    if source.suffix.lower() not in PROOF_EXTENSIONS:
        raise ValueError(f"Proof image must be one of: {', '.join(PROOF_EXTENSIONS)}")
    if source.stat().st_size > MAX_PROOF_BYTES:
        raise ValueError("File is too large (max 1MB)")
    return source


@dataclass
class HistoryStore:
    root: Path
    vault: Optional[Path] = None

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.vault = Path(self.vault) if self.vault is not None else self.root.parent / VAULT_DIR

    def load(self, athlete_id: int) -> AthleteHistory:
        path = record_path(self.root, athlete_id)
        if not path.exists():
            return AthleteHistory(athlete_id=int(athlete_id))
        return AthleteHistory.from_dict(read_json(path))

    def save(self, history: AthleteHistory) -> None:
        write_json(record_path(self.root, history.athlete_id), history.to_dict())

    def proof_file(self, relative_path: str) -> Path:
        """Resolve a stored proof path inside the vault."""
        parts = PurePosixPath(relative_path).parts
        if not parts or PurePosixPath(relative_path).is_absolute() or ".." in parts:
            raise ValueError(f"Unsafe proof image path: {relative_path}")
        return self.vault.joinpath(*parts)

    def _store_proof(self, source: Path, kind: str, athlete_id: int, record_id: int) -> str:
        source = check_proof_image(source)
        relative = f"{kind}/{int(athlete_id)}-{record_id}{source.suffix.lower()}"
        target = self.proof_file(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return relative

    def _remove_proof(self, relative_path: Optional[str]) -> None:
        if not relative_path:
            return
        target = self.proof_file(relative_path)
        if target.exists():
            target.unlink()
            logger.info("Removed proof image %s", relative_path)

    def add_promotion(
        self, athlete_id: int, promotion: Promotion, proof_path: Optional[Path] = None
    ) -> AthleteHistory:
        promotion.normalize()
        if proof_path is not None:
            check_proof_image(proof_path)
        history = self.load(athlete_id)
        promotion.promotion_id = history.issue_id()
        if proof_path is not None:
            promotion.proof_image_path = self._store_proof(proof_path, CERTIFICATES, athlete_id, promotion.promotion_id)
        history.promotions.append(promotion)
        history.promotions.sort(key=lambda p: p.promotion_date, reverse=True)
        self.save(history)
        logger.info("Recorded promotion to %s for athlete %s", promotion.rank, athlete_id)
        return history

    def add_medal(self, athlete_id: int, medal: Medal, proof_path: Optional[Path] = None) -> AthleteHistory:
        medal.normalize()
        if proof_path is not None:
            check_proof_image(proof_path)
        history = self.load(athlete_id)
        medal.medal_id = history.issue_id()
        if proof_path is not None:
            medal.proof_image_path = self._store_proof(proof_path, MEDAL_PHOTOS, athlete_id, medal.medal_id)
        history.medals.append(medal)
        history.medals.sort(key=lambda m: m.medal_date, reverse=True)
        self.save(history)
        logger.info("Recorded %s medal for athlete %s", medal.medal, athlete_id)
        return history

    def delete_promotion(self, athlete_id: int, promotion_id: int) -> bool:
        history = self.load(athlete_id)
        for promotion in history.promotions:
            if promotion.promotion_id == int(promotion_id):
                history.promotions.remove(promotion)
                self.save(history)
                self._remove_proof(promotion.proof_image_path)
                return True
        return False

    def delete_medal(self, athlete_id: int, medal_id: int) -> bool:
        history = self.load(athlete_id)
        for medal in history.medals:
            if medal.medal_id == int(medal_id):
                history.medals.remove(medal)
                self.save(history)
                self._remove_proof(medal.proof_image_path)
                return True
        return False

    def delete(self, athlete_id: int) -> bool:
        path = record_path(self.root, athlete_id)
        if not path.exists():
            return False
        history = self.load(athlete_id)
        path.unlink()
        for record in [*history.promotions, *history.medals]:
            self._remove_proof(record.proof_image_path)
        return True
