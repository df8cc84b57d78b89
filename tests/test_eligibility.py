from __future__ import annotations

import unittest

from judocenter.athletes import Athlete
from judocenter.rules.eligibility import check_roster_assignment, validate_athletes, validate_eligibility
from judocenter.rules.specs import AgeCategory, Ruleset, WeightClass, load_bundled_rulesets


def _ruleset() -> Ruleset:
    ruleset = Ruleset(
        name="Test Federation",
        categories=[
            AgeCategory("U-18 Cadets (M)", 15, 17, "M"),
            AgeCategory("U-18 Cadets (F)", 15, 17, "F"),
            AgeCategory("Seniors (M)", 21, 125, "M"),
        ],
    )
    ruleset.normalize()
    return ruleset


def _athlete(**overrides) -> Athlete:
    values = dict(
        athlete_id=7,
        name="Kenji Sato",
        birth_date="2008-03-14",
        gender="male",
        weight=72.5,
        rank="Green (3rd Kyu)",
    )
    values.update(overrides)
    return Athlete(**values)


class ValidateEligibilityTests(unittest.TestCase):
    def test_eligible_athlete_has_no_conflicts(self) -> None:
        self.assertEqual(validate_eligibility(_athlete(), _ruleset(), 2025), [])

    def test_unsaved_athlete_is_skipped(self) -> None:
        self.assertEqual(validate_eligibility(_athlete(athlete_id=None, weight=-1), _ruleset(), 2025), [])
        self.assertEqual(validate_eligibility({"name": "x", "weight": 300}, _ruleset(), 2025), [])

    def test_age_outside_every_category(self) -> None:
        conflicts = validate_eligibility(_athlete(birth_date="2006-01-01"), _ruleset(), 2025)
        self.assertEqual(len(conflicts), 1)
        conflict = conflicts[0]
        self.assertEqual(conflict.athlete_id, 7)
        self.assertEqual(conflict.type, "age")
        self.assertEqual(conflict.severity, "error")
        self.assertEqual(conflict.message, "No matching age category")
        self.assertEqual(conflict.details, "Athlete age (19) doesn't match any category in the active ruleset")

    def test_invalid_birth_date(self) -> None:
        athlete = {"athlete_id": 3, "birth_date": "unknown", "gender": "male", "weight": 70}
        conflicts = validate_eligibility(athlete, _ruleset(), 2025)
        self.assertEqual([c.details for c in conflicts], ["Invalid birth date"])

    def test_no_ruleset_means_age_error(self) -> None:
        conflicts = validate_eligibility(_athlete(), None, 2025)
        self.assertEqual([c.type for c in conflicts], ["age"])

    def test_unclassifiable_weight(self) -> None:
        athlete = {"id": 9, "birth_date": "2008-01-01", "gender": "unknown", "weight": 70}
        conflicts = validate_eligibility(athlete, _ruleset(), 2025)
        weight_conflicts = [c for c in conflicts if c.type == "weight"]
        self.assertEqual(len(weight_conflicts), 1)
        self.assertEqual(weight_conflicts[0].message, "Weight class unclassified")
        self.assertEqual(weight_conflicts[0].details, "Weight (70kg) doesn't fit any standard weight class")
        self.assertEqual(weight_conflicts[0].athlete_id, 9)

    def test_non_positive_weight_skips_weight_check(self) -> None:
        mixed = {"age_categories": [{"name": "Any", "min_age": 0, "max_age": 150, "gender": "MIXED"}]}
        rulesets = [_ruleset(), mixed, *load_bundled_rulesets()]
        for ruleset in rulesets:
            for weight in (0, -1, -72.5):
                athlete = {"athlete_id": 4, "birth_date": "2008-01-01", "gender": "male", "weight": weight}
                conflicts = validate_eligibility(athlete, ruleset, 2025)
                self.assertEqual([c for c in conflicts if c.type == "weight"], [], (weight, ruleset))

    def test_open_class_and_light_weights_never_conflict(self) -> None:
        self.assertEqual(validate_eligibility(_athlete(weight=140), _ruleset(), 2025), [])
        self.assertEqual(validate_eligibility(_athlete(weight=40), _ruleset(), 2025), [])

    def test_never_emits_warnings(self) -> None:
        for athlete in (_athlete(), _athlete(birth_date="2000-01-01", gender="female", weight=120)):
            for conflict in validate_eligibility(athlete, _ruleset(), 2025):
                self.assertEqual(conflict.severity, "error")

    def test_is_idempotent(self) -> None:
        athlete = _athlete(birth_date="2006-01-01")
        self.assertEqual(
            validate_eligibility(athlete, _ruleset(), 2025),
            validate_eligibility(athlete, _ruleset(), 2025),
        )

    def test_accepts_mapping_ruleset(self) -> None:
        ruleset = {"age_categories": [{"name": "Any", "min_age": 0, "max_age": 150, "gender": "MIXED"}]}
        self.assertEqual(validate_eligibility(_athlete(), ruleset, 2025), [])

    def test_validate_athletes_keys_by_id(self) -> None:
        results = validate_athletes(
            [_athlete(), _athlete(athlete_id=8, birth_date="2006-05-05"), _athlete(athlete_id=None)],
            _ruleset(),
            2025,
        )
        self.assertEqual(sorted(results), [7, 8])
        self.assertEqual(results[7], [])
        self.assertEqual(len(results[8]), 1)


class RosterAssignmentTests(unittest.TestCase):
    def test_matching_assignment_has_no_warnings(self) -> None:
        conflicts = check_roster_assignment(
            _athlete(), _ruleset(), "U-18 Cadets (M)", WeightClass(limit=73, label="-73kg"), 2025
        )
        self.assertEqual(conflicts, [])

    def test_category_mismatch_warning(self) -> None:
        conflicts = check_roster_assignment(_athlete(), _ruleset(), "Seniors (M)", "-73kg", 2025)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].severity, "warning")
        self.assertEqual(conflicts[0].type, "age")
        self.assertEqual(conflicts[0].message, "Age category mismatch")
        self.assertEqual(conflicts[0].details, "Athlete is U-18 Cadets (M), selected Seniors (M)")

    def test_over_the_tournament_limit_warning(self) -> None:
        conflicts = check_roster_assignment(
            _athlete(weight=74.2), _ruleset(), None, {"limit": 73, "label": "-73kg"}, 2025
        )
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].type, "weight")
        self.assertEqual(conflicts[0].severity, "warning")
        self.assertEqual(conflicts[0].details, "Weight 74.2kg > 73kg (-73kg)")

    def test_limit_falls_back_to_label_number(self) -> None:
        conflicts = check_roster_assignment(_athlete(weight=67), _ruleset(), None, "-66kg", 2025)
        self.assertEqual([c.message for c in conflicts], ["Weight exceeds class limit"])

    def test_label_without_number_is_not_checked(self) -> None:
        self.assertEqual(check_roster_assignment(_athlete(weight=200), _ruleset(), None, "Open", 2025), [])

    def test_open_class_has_no_ceiling(self) -> None:
        heavy = _athlete(birth_date="2000-01-01", weight=120)
        self.assertEqual(check_roster_assignment(heavy, _ruleset(), "Seniors (M)", "+100kg", 2025), [])
        stored = WeightClass(limit=100, label="+100kg")
        self.assertEqual(check_roster_assignment(heavy, _ruleset(), "Seniors (M)", stored, 2025), [])
        capped = WeightClass(limit=150, label="+100kg")
        self.assertEqual(check_roster_assignment(heavy, _ruleset(), "Seniors (M)", capped, 2025), [])
        over = check_roster_assignment(_athlete(birth_date="2000-01-01", weight=160), _ruleset(), None, capped, 2025)
        self.assertEqual([c.details for c in over], ["Weight 160kg > 150kg (+100kg)"])


if __name__ == "__main__":
    unittest.main()
