from __future__ import annotations

import argparse
from dataclasses import asdict, dataclass
import json
from pathlib import Path
import sys
from typing import Any, Optional

from . import __version__
from .athletes import RANKS, Athlete, AthleteStore
from .backup import create_backup, default_backup_filename, restore_backup
from .clubs import Club, ClubStore
from .config import AppConfig, load_app_config
from .export import default_roster_filename, default_summary_filename, export_roster_pdf, export_summary_pdf
from .history import HistoryStore, Medal, Promotion, medal_tally
from .logs import setup_logging
from .roster import build_roster_rows, summarize_roster
from .rules.age_category import resolve_age_category
from .rules.catalog import RulesetCatalog
from .rules.eligibility import validate_athletes, validate_eligibility
from .rules.specs import Ruleset, WeightClass, categories_of, load_ruleset_file
from .rules.weight_class import bucket_weight_class, division_limit, upper_bound
from .tournaments import TournamentStore

# Options whose values are weight-class labels such as "-66kg".
LABEL_OPTIONS = ("--weight-class",)


@dataclass
class DataStores:
    athletes: AthleteStore
    clubs: ClubStore
    rulesets: RulesetCatalog
    tournaments: TournamentStore
    history: HistoryStore

    @staticmethod
    def open(data_dir: Path) -> "DataStores":
        data_dir = Path(data_dir)
        return DataStores(
            athletes=AthleteStore(data_dir / "athletes"),
            clubs=ClubStore(data_dir / "clubs"),
            rulesets=RulesetCatalog(data_dir / "rulesets"),
            tournaments=TournamentStore(data_dir / "tournaments"),
            history=HistoryStore(data_dir / "history"),
        )

    def delete_athlete(self, athlete_id: int) -> bool:
        """Delete an athlete with their history, proof images and roster places."""
        if not self.athletes.delete(athlete_id):
            return False
        self.history.delete(athlete_id)
        for tournament in self.tournaments.list_tournaments():
            if tournament.tournament_id is not None:
                self.tournaments.remove_athlete(tournament.tournament_id, athlete_id)
        return True


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def parse_weight_class_arg(value: str) -> tuple[str, WeightClass]:
    """``"U-18 Cadets (M)=-60kg"`` or ``"Seniors (M)=+100kg:200"`` -> (category, WeightClass).

    Open classes (``+N``) have no upper bound of their own, so they need ``:LIMIT``.
    """
    category, sep, rest = value.partition("=")
    if not sep or not category.strip() or not rest.strip():
        raise ValueError(f"Weight class must look like CATEGORY=LABEL[:LIMIT]: {value}")
    label, _, raw_limit = rest.partition(":")
    label = label.strip()
    if raw_limit.strip():
        limit: Optional[float] = float(raw_limit)
    else:
        parsed = division_limit(label)
        if parsed is not None and parsed[1]:
            raise ValueError(f"Open class '{label}' has no upper bound; add :LIMIT")
        limit = upper_bound(label)
    if limit is None:
        raise ValueError(f"Cannot read a weight limit from '{label}'; add :LIMIT")
    return category.strip(), WeightClass(limit=limit, label=label)


def attach_label_values(argv: list[str]) -> list[str]:
    """Join ``--weight-class -66kg`` into ``--weight-class=-66kg``.

    argparse reads a bare ``-66kg`` as an option flag rather than a value.
    """
    out: list[str] = []
    i = 0
    while i < len(argv):
        token = argv[i]
        nxt = argv[i + 1] if i + 1 < len(argv) else ""
        if token in LABEL_OPTIONS and nxt.startswith("-") and nxt[1:2].isdigit():
            out.append(f"{token}={nxt}")
            i += 2
            continue
        out.append(token)
        i += 1
    return out


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="judocenter",
        description="Judo athlete records, age-category rulesets, tournament rosters and eligibility checks.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--data-dir", default=None, help="Data directory (default: $JUDOCENTER_HOME or ~/.judocenter).")
    p.add_argument("--config", default=None, help="Config file (default: $JUDOCENTER_CONFIG or <data-dir>/config.yaml).")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR.")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ath = sub.add_parser("athlete", help="Athlete records")
    subp = p_ath.add_subparsers(dest="action", required=True)
    p_add = subp.add_parser("add", help="Add an athlete")
    p_add.add_argument("--name", required=True)
    p_add.add_argument("--birth-date", required=True, help="YYYY-MM-DD")
    p_add.add_argument("--gender", required=True, choices=["male", "female"])
    p_add.add_argument("--weight", required=True, type=float, help="Weight in kg")
    p_add.add_argument("--rank", default=RANKS[0])
    p_add.add_argument("--club-id", type=int, default=None)
    p_add.add_argument("--member-id", default=None)
    p_add.add_argument("--email", default=None)
    p_add.add_argument("--phone", default=None)
    p_add.add_argument("--region", default=None)
    p_add.add_argument("--school", dest="school_name", default=None)
    p_add.add_argument("--activity-status", default="Constant", choices=["Constant", "Intermittent", "Dormant"])
    subp.add_parser("list", help="List athletes")
    p_show = subp.add_parser("show", help="Show an athlete")
    p_show.add_argument("athlete_id", type=int)
    subp.add_parser("stats", help="Athlete pool statistics")
    p_del = subp.add_parser("delete", help="Delete an athlete with their history and roster places")
    p_del.add_argument("athlete_id", type=int)

    p_club = sub.add_parser("club", help="Club records")
    subc = p_club.add_subparsers(dest="action", required=True)
    p_cadd = subc.add_parser("add", help="Add a club")
    p_cadd.add_argument("--name", required=True)
    p_cadd.add_argument("--contact-person", default=None)
    p_cadd.add_argument("--contact-phone", default=None)
    p_cadd.add_argument("--contact-email", default=None)
    p_cadd.add_argument("--location", default=None)
    subc.add_parser("list", help="List clubs")

    p_rules = sub.add_parser("ruleset", help="Age-category rulesets")
    subr = p_rules.add_subparsers(dest="action", required=True)
    subr.add_parser("list", help="List rulesets")
    p_rshow = subr.add_parser("show", help="Show a ruleset")
    p_rshow.add_argument("ruleset_id", type=int)
    p_ract = subr.add_parser("activate", help="Make a ruleset the active one")
    p_ract.add_argument("ruleset_id", type=int)
    p_rimp = subr.add_parser("import", help="Import a ruleset from YAML")
    p_rimp.add_argument("path")
    p_rimp.add_argument("--activate", action="store_true")
    subr.add_parser("seed", help="Install the bundled rulesets into an empty catalog")

    p_cls = sub.add_parser("classify", help="Resolve an athlete's age category and weight class")
    p_cls.add_argument("athlete_id", type=int)
    p_cls.add_argument("--ruleset-id", type=int, default=None)
    p_cls.add_argument("--year", type=int, default=None, help="Reference year (default: current year)")

    p_val = sub.add_parser("validate", help="Check athletes against a ruleset")
    p_val.add_argument("athlete_ids", type=int, nargs="*", help="Athlete ids (default: all)")
    p_val.add_argument("--ruleset-id", type=int, default=None)
    p_val.add_argument("--year", type=int, default=None)

    p_tour = sub.add_parser("tournament", help="Tournaments and rosters")
    subt = p_tour.add_subparsers(dest="action", required=True)
    p_tnew = subt.add_parser("create", help="Create a tournament from a ruleset")
    p_tnew.add_argument("--name", required=True)
    p_tnew.add_argument("--date", required=True, help="YYYY-MM-DD")
    p_tnew.add_argument("--location", default=None)
    p_tnew.add_argument("--ruleset-id", type=int, default=None)
    p_tnew.add_argument(
        "--weight-class",
        action="append",
        default=[],
        help="CATEGORY=LABEL[:LIMIT], repeatable (e.g. 'Seniors (M)=-73kg').",
    )
    subt.add_parser("list", help="List tournaments")
    p_tshow = subt.add_parser("show", help="Show a tournament and its checked roster")
    p_tshow.add_argument("tournament_id", type=int)
    p_tadd = subt.add_parser("roster-add", help="Add an athlete to a roster")
    p_tadd.add_argument("tournament_id", type=int)
    p_tadd.add_argument("athlete_id", type=int)
    p_tadd.add_argument("--weight-class", required=True)
    p_tadd.add_argument("--category", default=None)
    p_trm = subt.add_parser("roster-remove", help="Remove an athlete from a roster")
    p_trm.add_argument("tournament_id", type=int)
    p_trm.add_argument("athlete_id", type=int)
    p_texp = subt.add_parser("export", help="Export a roster to PDF")
    p_texp.add_argument("tournament_id", type=int)
    p_texp.add_argument("--out", default=None)
    p_texp.add_argument("--column", action="append", default=None, help="Extra column (club, region, school_name, ...)")

    p_sum = sub.add_parser("summary", help="Export the athlete pool summary PDF")
    p_sum.add_argument("--out", default=None)
    p_sum.add_argument("--ruleset-id", type=int, default=None)
    p_sum.add_argument("--year", type=int, default=None)

    p_hist = sub.add_parser("history", help="Promotions and medals")
    subh = p_hist.add_subparsers(dest="action", required=True)
    p_medal = subh.add_parser("add-medal", help="Record a medal")
    p_medal.add_argument("athlete_id", type=int)
    p_medal.add_argument("--medal", required=True, choices=["Gold", "Silver", "Bronze"])
    p_medal.add_argument("--tournament", required=True)
    p_medal.add_argument("--date", required=True)
    p_medal.add_argument("--category", default=None)
    p_medal.add_argument("--proof", default=None, help="Photo of the medal or result sheet (jpg, png, webp; max 1 MB)")
    p_promo = subh.add_parser("add-promotion", help="Record a rank promotion")
    p_promo.add_argument("athlete_id", type=int)
    p_promo.add_argument("--rank", required=True)
    p_promo.add_argument("--date", required=True)
    p_promo.add_argument("--notes", default=None)
    p_promo.add_argument("--proof", default=None, help="Photo of the rank certificate (jpg, png, webp; max 1 MB)")
    p_dmedal = subh.add_parser("delete-medal", help="Delete a medal and its proof image")
    p_dmedal.add_argument("athlete_id", type=int)
    p_dmedal.add_argument("medal_id", type=int)
    p_dpromo = subh.add_parser("delete-promotion", help="Delete a promotion and its proof image")
    p_dpromo.add_argument("athlete_id", type=int)
    p_dpromo.add_argument("promotion_id", type=int)
    p_hshow = subh.add_parser("show", help="Show an athlete's history")
    p_hshow.add_argument("athlete_id", type=int)

    p_bak = sub.add_parser("backup", help="Back up the data directory to a zip file")
    p_bak.add_argument("--out", default=None, help=f"Output path (default: ./{default_backup_filename()})")
    p_res = sub.add_parser("restore", help="Restore the data directory from a backup")
    p_res.add_argument("archive")

    return p


def _ruleset_for(stores: DataStores, ruleset_id: Optional[int]) -> Optional[Ruleset]:
    if ruleset_id is not None:
        return stores.rulesets.get(ruleset_id)
    return stores.rulesets.get_active_ruleset()


def _reference_year(args: argparse.Namespace, config: AppConfig) -> Optional[int]:
    year = getattr(args, "year", None)
    return year if year is not None else config.reference_year


def _run_athlete(args: argparse.Namespace, stores: DataStores) -> int:
    if args.action == "add":
        athlete = stores.athletes.create(
            Athlete(
                name=args.name,
                birth_date=args.birth_date,
                gender=args.gender,
                weight=args.weight,
                rank=args.rank,
                club_id=args.club_id,
                member_id=args.member_id,
                email=args.email,
                phone=args.phone,
                region=args.region,
                school_name=args.school_name,
                activity_status=args.activity_status,
            )
        )
        print(f"Created athlete {athlete.athlete_id}: {athlete.name}")
        return 0
    if args.action == "list":
        for athlete in stores.athletes.list_athletes():
            print(f"{athlete.athlete_id}\t{athlete.name}\t{athlete.gender}\t{athlete.weight:g}kg\t{athlete.rank}")
        return 0
    if args.action == "show":
        _print_json(stores.athletes.load(args.athlete_id).to_dict())
        return 0
    if args.action == "stats":
        _print_json(asdict(stores.athletes.pool_statistics()))
        return 0
    if args.action == "delete":
        if not stores.delete_athlete(args.athlete_id):
            raise FileNotFoundError(f"Athlete not found: {args.athlete_id}")
        print(f"Deleted athlete {args.athlete_id}")
        return 0
    return 2


def _run_club(args: argparse.Namespace, stores: DataStores) -> int:
    if args.action == "add":
        club = stores.clubs.create(
            Club(
                name=args.name,
                contact_person=args.contact_person,
                contact_phone=args.contact_phone,
                contact_email=args.contact_email,
                location=args.location,
            )
        )
        print(f"Created club {club.club_id}: {club.name}")
        return 0
    if args.action == "list":
        for club in stores.clubs.list_clubs():
            print(f"{club.club_id}\t{club.name}\t{club.location or '-'}")
        return 0
    return 2


def _run_ruleset(args: argparse.Namespace, stores: DataStores) -> int:
    catalog = stores.rulesets
    if args.action == "list":
        for ruleset in catalog.list_rulesets():
            marker = "*" if ruleset.is_active else " "
            print(f"{marker} {ruleset.ruleset_id}\t{ruleset.name}\t{len(ruleset.categories)} categories")
        return 0
    if args.action == "show":
        ruleset = catalog.get(args.ruleset_id)
        data = ruleset.to_dict()
        data["is_active"] = ruleset.is_active
        _print_json(data)
        return 0
    if args.action == "activate":
        ruleset = catalog.set_active_ruleset(args.ruleset_id)
        print(f"Active ruleset: {ruleset.ruleset_id} ({ruleset.name})")
        return 0
    if args.action == "import":
        ruleset = catalog.create(load_ruleset_file(Path(args.path)), activate=args.activate or None)
        print(f"Imported ruleset {ruleset.ruleset_id}: {ruleset.name}")
        return 0
    if args.action == "seed":
        created = catalog.seed_defaults()
        if not created:
            print("Ruleset catalog is not empty; nothing seeded.")
        for ruleset in created:
            print(f"Seeded ruleset {ruleset.ruleset_id}: {ruleset.name}")
        return 0
    return 2


def _run_tournament(args: argparse.Namespace, stores: DataStores, config: AppConfig) -> int:
    store = stores.tournaments
    if args.action == "create":
        ruleset = _ruleset_for(stores, args.ruleset_id)
        if ruleset is None:
            raise ValueError("No active ruleset. Activate one or pass --ruleset-id.")
        weight_classes: dict[str, list[WeightClass]] = {}
        for raw in args.weight_class:
            category, weight_class = parse_weight_class_arg(raw)
            weight_classes.setdefault(category, []).append(weight_class)
        tournament = store.create_tournament(
            name=args.name,
            date=args.date,
            ruleset=ruleset,
            weight_classes_by_category=weight_classes,
            location=args.location,
        )
        print(f"Created tournament {tournament.tournament_id}: {tournament.name}")
        return 0
    if args.action == "list":
        for tournament in store.list_tournaments():
            print(f"{tournament.tournament_id}\t{tournament.date}\t{tournament.name}\t{len(tournament.roster)} athletes")
        return 0
    if args.action == "show":
        tournament = store.load(args.tournament_id)
        athletes = {a.athlete_id: a for a in stores.athletes.find_by_ids(tournament.roster_ids())}
        rows = build_roster_rows(
            tournament.roster,
            athletes,
            tournament.ruleset_snapshot,
            tournament.reference_year,
            stores.clubs.clubs_by_id(),
        )
        data = tournament.model_dump(mode="json")
        data["roster_rows"] = [row.to_dict() for row in rows]
        data["summary"] = asdict(summarize_roster(rows))
        _print_json(data)
        return 0
    if args.action == "roster-add":
        stores.athletes.load(args.athlete_id)
        store.add_athlete(args.tournament_id, args.athlete_id, args.weight_class, args.category)
        print(f"Added athlete {args.athlete_id} to tournament {args.tournament_id}")
        return 0
    if args.action == "roster-remove":
        if not store.remove_athlete(args.tournament_id, args.athlete_id):
            print(f"Athlete {args.athlete_id} is not on the roster")
            return 1
        print(f"Removed athlete {args.athlete_id} from tournament {args.tournament_id}")
        return 0
    if args.action == "export":
        tournament = store.load(args.tournament_id)
        athletes = {a.athlete_id: a for a in stores.athletes.find_by_ids(tournament.roster_ids())}
        out = Path(args.out) if args.out else config.output_dir / default_roster_filename(tournament.name)
        columns = tuple(args.column) if args.column else ("club",)
        path = export_roster_pdf(
            tournament,
            athletes,
            out,
            clubs_by_id=stores.clubs.clubs_by_id(),
            columns=columns,
            organization_name=config.organization_name,
        )
        print(f"Saved: {path}")
        return 0
    return 2


def _run_history(args: argparse.Namespace, stores: DataStores) -> int:
    stores.athletes.load(args.athlete_id)
    if args.action == "add-medal":
        medal = Medal(medal=args.medal, tournament_name=args.tournament, medal_date=args.date, category=args.category)
        stores.history.add_medal(args.athlete_id, medal, proof_path=Path(args.proof) if args.proof else None)
        print(f"Recorded {medal.medal} medal {medal.medal_id} for athlete {args.athlete_id}")
        return 0
    if args.action == "add-promotion":
        promotion = Promotion(rank=args.rank, promotion_date=args.date, notes=args.notes)
        stores.history.add_promotion(args.athlete_id, promotion, proof_path=Path(args.proof) if args.proof else None)
        print(f"Recorded promotion {promotion.promotion_id} to {args.rank} for athlete {args.athlete_id}")
        return 0
    if args.action == "delete-medal":
        if not stores.history.delete_medal(args.athlete_id, args.medal_id):
            print(f"Medal {args.medal_id} not found for athlete {args.athlete_id}")
            return 1
        print(f"Deleted medal {args.medal_id}")
        return 0
    if args.action == "delete-promotion":
        if not stores.history.delete_promotion(args.athlete_id, args.promotion_id):
            print(f"Promotion {args.promotion_id} not found for athlete {args.athlete_id}")
            return 1
        print(f"Deleted promotion {args.promotion_id}")
        return 0
    if args.action == "show":
        history = stores.history.load(args.athlete_id)
        data = history.to_dict()
        data["medal_tally"] = medal_tally(history.medals)
        _print_json(data)
        return 0
    return 2


def _dispatch(args: argparse.Namespace, config: AppConfig) -> int:
    if args.cmd == "backup":
        out = Path(args.out) if args.out else None
        print(f"Saved: {create_backup(config.data_dir, out)}")
        return 0
    if args.cmd == "restore":
        manifest = restore_backup(Path(args.archive), config.data_dir)
        print(f"Restored {len(manifest.get('files', []))} files into {config.data_dir}")
        return 0

    stores = DataStores.open(config.data_dir)
    if args.cmd == "athlete":
        return _run_athlete(args, stores)
    if args.cmd == "club":
        return _run_club(args, stores)
    if args.cmd == "ruleset":
        return _run_ruleset(args, stores)
    if args.cmd == "tournament":
        return _run_tournament(args, stores, config)
    if args.cmd == "history":
        return _run_history(args, stores)

    if args.cmd == "classify":
        athlete = stores.athletes.load(args.athlete_id)
        ruleset = _ruleset_for(stores, args.ruleset_id)
        year = _reference_year(args, config)
        _print_json(
            {
                "athlete_id": athlete.athlete_id,
                "name": athlete.name,
                "ruleset": ruleset.name if ruleset is not None else None,
                "age_category": resolve_age_category(athlete.birth_date, athlete.gender, categories_of(ruleset), year),
                "weight_class": bucket_weight_class(athlete.gender, athlete.weight),
                "conflicts": [c.to_dict() for c in validate_eligibility(athlete, ruleset, year)],
            }
        )
        return 0

    if args.cmd == "validate":
        ruleset = _ruleset_for(stores, args.ruleset_id)
        if args.athlete_ids:
            athletes = [stores.athletes.load(athlete_id) for athlete_id in args.athlete_ids]
        else:
            athletes = stores.athletes.list_athletes()
        results = validate_athletes(athletes, ruleset, _reference_year(args, config))
        _print_json({str(k): [c.to_dict() for c in v] for k, v in results.items() if v})
        return 0

    if args.cmd == "summary":
        ruleset = _ruleset_for(stores, args.ruleset_id)
        out = Path(args.out) if args.out else config.output_dir / default_summary_filename()
        path = export_summary_pdf(
            stores.athletes.list_athletes(),
            ruleset,
            out,
            reference_year=_reference_year(args, config),
            clubs_by_id=stores.clubs.clubs_by_id(),
            organization_name=config.organization_name,
        )
        print(f"Saved: {path}")
        return 0

    return 2


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(attach_label_values(list(sys.argv[1:] if argv is None else argv)))

    config = load_app_config(
        path=Path(args.config) if args.config else None,
        data_dir=Path(args.data_dir) if args.data_dir else None,
    )
    setup_logging(args.log_level or config.log_level)

    try:
        return _dispatch(args, config)
    except KeyError as exc:
        print(f"error: {exc.args[0] if exc.args else exc}", file=sys.stderr)
        return 1
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
