from __future__ import annotations

import unittest

from judocenter.athletes import Athlete
from judocenter.clubs import Club
from judocenter.roster import (
    build_pool_rows,
    build_roster_rows,
    group_roster_by_category,
    roster_frame,
    summarize_roster,
)
from judocenter.rules.specs import AgeCategory, Ruleset, WeightClass
from judocenter.tournaments import RosterEntry, RulesetSnapshot


def _ruleset() -> Ruleset:
    ruleset = Ruleset(
        name="Cup Rules",
        categories=[
            AgeCategory("Cadets (M)", 15, 17, "M"),
            AgeCategory("Cadets (F)", 15, 17, "F"),
            AgeCategory("Seniors (M)", 21, 125, "M"),
        ],
    )
    ruleset.normalize()
    return ruleset


def _snapshot() -> RulesetSnapshot:
    return RulesetSnapshot.capture(
        _ruleset(),
        {
            "Cadets (M)": [WeightClass(60, "-60kg"), WeightClass(73, "-73kg")],
            "Cadets (F)": [WeightClass(52, "-52kg")],
            "Seniors (M)": [WeightClass(90, "-90kg")],
        },
    )


def _athletes() -> dict[int, Athlete]:
    people = [
        Athlete(athlete_id=1, name="Yuto", birth_date="2009-01-01", gender="male", weight=58, club_id=1),
        Athlete(athlete_id=2, name="Ren", birth_date="2010-01-01", gender="male", weight=74.5),
        Athlete(athlete_id=3, name="Hana", birth_date="2009-05-05", gender="female", weight=50, region="Kanto"),
        Athlete(athlete_id=4, name="Akira", birth_date="2010-08-08", gender="male", weight=59),
        Athlete(athlete_id=5, name="Old Timer", birth_date="2005-01-01", gender="male", weight=88),
    ]
    return {a.athlete_id: a for a in people}


ENTRIES = [
    RosterEntry(athlete_id=1, weight_class="-60kg", category="Cadets (M)"),
    RosterEntry(athlete_id=2, weight_class="-73kg", category="Cadets (M)"),
    RosterEntry(athlete_id=3, weight_class="-52kg"),
    RosterEntry(athlete_id=4, weight_class="-60kg"),
    RosterEntry(athlete_id=5, weight_class="-90kg", category="Seniors (M)"),
]


class RosterRowsTests(unittest.TestCase):
    def test_rows_carry_category_club_and_conflicts(self) -> None:
        rows = build_roster_rows(ENTRIES, _athletes(), _snapshot(), 2026, {1: Club(name="Tokyo Dojo", club_id=1)})
        by_id = {row.athlete_id: row for row in rows}

        self.assertEqual(by_id[1].age_category, "Cadets (M)")
        self.assertEqual(by_id[1].club_name, "Tokyo Dojo")
        self.assertEqual(by_id[1].conflicts, [])

        # 74.5kg in a 73kg tournament class
        self.assertEqual([c.severity for c in by_id[2].conflicts], ["warning"])
        self.assertEqual(by_id[2].conflicts[0].message, "Weight exceeds class limit")

        self.assertEqual(by_id[3].extra["region"], "Kanto")

        # 21 in 2026, selected into Seniors; no age error, no warning
        self.assertEqual(by_id[5].age_category, "Seniors (M)")
        self.assertFalse(by_id[5].has_conflicts)

    def test_unknown_athlete_raises_key_error(self) -> None:
        with self.assertRaises(KeyError):
            build_roster_rows([RosterEntry(athlete_id=99, weight_class="-60kg")], _athletes(), _snapshot(), 2026)

    def test_grouping_follows_ruleset_order(self) -> None:
        rows = build_roster_rows(ENTRIES, _athletes(), _snapshot(), 2026)
        groups = group_roster_by_category(rows, _snapshot())

        self.assertEqual([name for name, _ in groups], ["Cadets (M)", "Cadets (F)", "Seniors (M)"])
        cadets_m = dict(groups[0][1])
        self.assertEqual(sorted(cadets_m), ["-60kg", "-73kg"])
        self.assertEqual([r.name for r in cadets_m["-60kg"]], ["Akira", "Yuto"])

    def test_unclassified_rows_grouped_last(self) -> None:
        rows = build_roster_rows(ENTRIES, _athletes(), _snapshot(), 2030)
        names = [name for name, _ in group_roster_by_category(rows, _ruleset())]
        self.assertEqual(names, ["Seniors (M)", "Unclassified"])

    def test_empty_categories_are_omitted(self) -> None:
        rows = build_roster_rows(ENTRIES[:1], _athletes(), _snapshot(), 2026)
        self.assertEqual([name for name, _ in group_roster_by_category(rows, _snapshot())], ["Cadets (M)"])


class SummaryTests(unittest.TestCase):
    def test_summarize_roster(self) -> None:
        rows = build_roster_rows(ENTRIES, _athletes(), _snapshot(), 2026)
        summary = summarize_roster(rows)
        self.assertEqual(summary.total, 5)
        self.assertEqual(summary.male, 4)
        self.assertEqual(summary.female, 1)
        self.assertEqual(summary.by_category, {"Cadets (F)": 1, "Cadets (M)": 3, "Seniors (M)": 1})
        self.assertEqual(summary.with_conflicts, 1)
        self.assertEqual(summary.with_errors, 0)

    def test_pool_rows_use_standard_divisions(self) -> None:
        rows = build_pool_rows(_athletes().values(), _ruleset(), 2026)
        by_id = {row.athlete_id: row for row in rows}
        self.assertEqual(by_id[2].weight_class, "-81kg")
        self.assertEqual(by_id[3].weight_class, "-52kg")
        self.assertEqual(by_id[1].weight_class, "-60kg")

    def test_pool_rows_flag_age_errors(self) -> None:
        rows = build_pool_rows(_athletes().values(), _ruleset(), 2025)
        by_id = {row.athlete_id: row for row in rows}
        # 20 in 2025: between cadets and seniors
        self.assertTrue(by_id[5].has_errors)
        self.assertEqual(summarize_roster(rows).with_errors, 1)

    def test_roster_frame(self) -> None:
        frame = roster_frame(build_roster_rows(ENTRIES, _athletes(), _snapshot(), 2026))
        self.assertEqual(len(frame), 5)
        self.assertIn("age_category", frame.columns)
        self.assertIn("region", frame.columns)
        self.assertEqual(int(frame["conflicts"].sum()), 1)
        self.assertEqual(frame.groupby("gender").size().to_dict(), {"female": 1, "male": 4})
        self.assertEqual(int((frame["flag"] != "ok").sum()), int((frame["conflicts"] > 0).sum()))
        self.assertTrue(set(frame["flag"]) <= {"ok", "warning", "ERROR"})


if __name__ == "__main__":
    unittest.main()
