from __future__ import annotations

from datetime import date
import logging
from pathlib import Path
import re
import textwrap
from typing import Any, Iterable, Mapping, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

from .roster import RosterRow, build_pool_rows, build_roster_rows, group_roster_by_category, roster_frame
from .rules.specs import categories_of
from .tournaments import Tournament

logger = logging.getLogger(__name__)

A4_LANDSCAPE = (11.69, 8.27)

# (row attribute or extra key, header, column width in figure units)
BASE_COLUMNS: tuple[tuple[str, str, float], ...] = (
    ("name", "Name", 0.22),
    ("birth_date", "Birth Date", 0.10),
    ("gender", "Gender", 0.07),
    ("weight", "Weight", 0.07),
    ("rank", "Belt", 0.14),
)

OPTIONAL_COLUMNS: dict[str, tuple[str, float]] = {
    "club": ("Club", 0.14),
    "birth_place": ("Birth Place", 0.10),
    "region": ("Region", 0.10),
    "address": ("Address", 0.16),
    "phone": ("Phone", 0.10),
    "email": ("Email", 0.14),
    "parent_guardian": ("Parent/Guardian", 0.12),
    "parent_phone": ("Parent Phone", 0.10),
    "school_name": ("School", 0.12),
    "nisn": ("NISN", 0.08),
    "nik": ("NIK", 0.10),
}

_UNSAFE = re.compile(r"[^A-Za-z0-9]+")


def sanitize_filename(name: str) -> str:
    return _UNSAFE.sub("_", name or "").strip("_") or "Tournament"


def default_roster_filename(tournament_name: str, on: Optional[date] = None) -> str:
    return f"{sanitize_filename(tournament_name)}_Roster_{(on or date.today()).isoformat()}.pdf"


def default_summary_filename(on: Optional[date] = None) -> str:
    return f"Athlete_Summary_{(on or date.today()).isoformat()}.pdf"


def _cell(row: RosterRow, key: str) -> str:
    if key == "club":
        return row.club_name or "-"
    if key == "weight":
        return f"{row.weight:g} kg"
    if key == "gender":
        return row.gender.capitalize()
    value = getattr(row, key, None) if hasattr(row, key) else row.extra.get(key)
    return str(value) if value not in (None, "") else "-"


def _resolve_columns(columns: Sequence[str]) -> list[tuple[str, str, float]]:
    out = list(BASE_COLUMNS)
    for key in columns:
        if key not in OPTIONAL_COLUMNS:
            raise ValueError(f"Unknown export column: {key}")
        header, width = OPTIONAL_COLUMNS[key]
        out.append((key, header, width))
    total = sum(width for _, _, width in out)
    if total > 0.92:
        # Squeeze to the printable width.
        out = [(key, header, width * 0.92 / total) for key, header, width in out]
    return out


class _PageWriter:
    """Top-down text layout across as many PdfPages pages as needed."""

    top = 0.93
    bottom = 0.06
    left = 0.04

    def __init__(self, pdf: PdfPages, footer: str) -> None:
        self.pdf = pdf
        self.footer = footer
        self.page_no = 0
        self.fig: Optional[plt.Figure] = None
        self.y = self.top
        self.new_page()

    def new_page(self) -> None:
        self.finish_page()
        self.page_no += 1
        self.fig = plt.figure(figsize=A4_LANDSCAPE)
        self.fig.patch.set_facecolor("white")
        self.y = self.top

    def finish_page(self) -> None:
        if self.fig is None:
            return
        self.fig.text(self.left, 0.025, f"{self.footer} | Page {self.page_no}", fontsize=7, color="#555555")
        self.pdf.savefig(self.fig)
        plt.close(self.fig)
        self.fig = None

    def ensure(self, space: float) -> None:
        if self.y - space < self.bottom:
            self.new_page()

    def text(self, text: str, fontsize: int = 10, step: float = 0.03, indent: float = 0.0, **kwargs: Any) -> None:
        self.ensure(step)
        self.fig.text(self.left + indent, self.y, text, fontsize=fontsize, **kwargs)
        self.y -= step

    def wrapped(self, text: str, width: int = 150, fontsize: int = 9, step: float = 0.024) -> None:
        for line in textwrap.wrap(text, width=width):
            self.text(line, fontsize=fontsize, step=step)

    def row(self, cells: Sequence[str], columns: Sequence[tuple[str, str, float]], bold: bool = False) -> None:
        self.ensure(0.026)
        x = self.left + 0.01
        for value, (_, _, width) in zip(cells, columns):
            limit = max(4, int(width * 150))
            shown = value if len(value) <= limit else value[: limit - 1] + "…"
            self.fig.text(x, self.y, shown, fontsize=8, weight="bold" if bold else "normal")
            x += width
        self.y -= 0.026


def export_roster_pdf(
    tournament: Tournament,
    athletes_by_id: Mapping[int, Any],
    out_path: Path,
    clubs_by_id: Optional[Mapping[int, Any]] = None,
    columns: Sequence[str] = ("club",),
    organization_name: Optional[str] = None,
) -> Path:
    """Write the tournament roster grouped by age category and weight class."""
    if not tournament.roster:
        raise ValueError("No athletes in roster")
    snapshot = tournament.ruleset_snapshot
    if not categories_of(snapshot):
        raise ValueError("Invalid ruleset: no categories found")

    rows = build_roster_rows(tournament.roster, athletes_by_id, snapshot, tournament.reference_year, clubs_by_id)
    groups = group_roster_by_category(rows, snapshot)
    layout = _resolve_columns(columns)
    headers = [header for _, header, _ in layout]

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with PdfPages(out_path) as pdf:
        page = _PageWriter(pdf, footer=f"{tournament.name} roster")
        if organization_name:
            page.text(organization_name, fontsize=10, step=0.028, color="#333333")
        page.text(tournament.name, fontsize=18, step=0.045, weight="bold")
        details = f"Date: {tournament.date}"
        if tournament.location:
            details += f" | Location: {tournament.location}"
        page.text(details, fontsize=10)
        page.text(f"Ruleset: {snapshot.ruleset_name} | Athletes: {len(rows)}", fontsize=10, step=0.045)

        for category_name, weight_groups in groups:
            page.ensure(0.12)
            page.text(category_name, fontsize=13, step=0.035, weight="bold")
            for label, members in weight_groups:
                page.ensure(0.08)
                page.text(f"{label} ({len(members)})", fontsize=11, step=0.03, indent=0.01, weight="bold")
                page.row(headers, layout, bold=True)
                for row in members:
                    page.row([_cell(row, key) for key, _, _ in layout], layout)
                page.y -= 0.01
        page.finish_page()

    logger.info("Exported roster for %s to %s", tournament.name, out_path)
    return out_path


def _frame_cell(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    if key == "weight":
        return f"{value:g} kg"
    if key == "gender":
        return str(value).capitalize()
    return str(value) if value not in (None, "") else "-"


def _counts(series: Any) -> str:
    return ", ".join(f"{name}: {count}" for name, count in series.items())


def export_summary_pdf(
    athletes: Iterable[Any],
    ruleset: Any,
    out_path: Path,
    reference_year: Optional[int] = None,
    clubs_by_id: Optional[Mapping[int, Any]] = None,
    organization_name: Optional[str] = None,
) -> Path:
    """Write the athlete pool with resolved category, weight class and conflict flag."""
    rows = build_pool_rows(athletes, ruleset, reference_year, clubs_by_id)
    if not rows:
        raise ValueError("No athletes to export")
    df = roster_frame(rows).sort_values("name", key=lambda names: names.str.lower())
    layout = [
        ("name", "Name", 0.24),
        ("club", "Club", 0.16),
        ("gender", "Gender", 0.08),
        ("weight", "Weight", 0.08),
        ("age_category", "Age Category", 0.18),
        ("weight_class", "Weight Class", 0.10),
        ("flag", "Eligibility", 0.10),
    ]
    genders = df["gender"].value_counts()
    by_category = df.groupby("age_category").size().sort_index()
    by_weight = df.groupby("weight_class").size().sort_index()

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    ruleset_name = getattr(ruleset, "name", None) or getattr(ruleset, "ruleset_name", None) or "No active ruleset"
    with PdfPages(out_path) as pdf:
        page = _PageWriter(pdf, footer="Athlete summary")
        page.text(organization_name or "Athlete Summary", fontsize=18, step=0.045, weight="bold")
        page.text(f"Ruleset: {ruleset_name} | Generated: {date.today().isoformat()}", fontsize=10)
        page.text(
            f"Total: {len(df)} | Male: {int(genders.get('male', 0))} | Female: {int(genders.get('female', 0))} | "
            f"With conflicts: {int((df['conflicts'] > 0).sum())} | With errors: {int((df['errors'] > 0).sum())}",
            fontsize=10,
        )
        page.wrapped(f"By age category: {_counts(by_category)}")
        page.wrapped(f"By weight class: {_counts(by_weight)}")
        page.y -= 0.02
        page.row([header for _, header, _ in layout], layout, bold=True)
        for record in df.to_dict("records"):
            page.row([_frame_cell(record, key) for key, _, _ in layout], layout)
        page.finish_page()

    logger.info("Exported athlete summary (%d athletes) to %s", len(df), out_path)
    return out_path
