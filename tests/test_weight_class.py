from __future__ import annotations

import unittest

from judocenter.rules.age_category import UNCLASSIFIED
from judocenter.rules.weight_class import WEIGHT_DIVISIONS, bucket_weight_class, division_limit, label_limit, upper_bound


class BucketWeightClassTests(unittest.TestCase):
    def test_upper_bounds_are_inclusive(self) -> None:
        self.assertEqual(bucket_weight_class("male", 60), "-60kg")
        self.assertEqual(bucket_weight_class("male", 60.1), "-66kg")
        self.assertEqual(bucket_weight_class("male", 100), "-100kg")
        self.assertEqual(bucket_weight_class("female", 48), "-48kg")
        self.assertEqual(bucket_weight_class("female", 63.5), "-70kg")

    def test_open_class_is_strictly_above(self) -> None:
        self.assertEqual(bucket_weight_class("male", 100.5), "+100kg")
        self.assertEqual(bucket_weight_class("female", 78.01), "+78kg")
        self.assertEqual(bucket_weight_class("female", 150), "+78kg")

    def test_light_athletes_use_lightest_class(self) -> None:
        self.assertEqual(bucket_weight_class("male", 35), "-60kg")
        self.assertEqual(bucket_weight_class("female", 0.5), "-48kg")

    def test_gender_is_case_insensitive(self) -> None:
        self.assertEqual(bucket_weight_class("Male", 73), "-73kg")

    def test_degenerate_inputs_are_unclassified(self) -> None:
        self.assertEqual(bucket_weight_class("male", 0), UNCLASSIFIED)
        self.assertEqual(bucket_weight_class("male", -5), UNCLASSIFIED)
        self.assertEqual(bucket_weight_class("male", None), UNCLASSIFIED)
        self.assertEqual(bucket_weight_class("male", "heavy"), UNCLASSIFIED)
        self.assertEqual(bucket_weight_class("male", True), UNCLASSIFIED)
        self.assertEqual(bucket_weight_class("other", 70), UNCLASSIFIED)
        self.assertEqual(bucket_weight_class(None, 70), UNCLASSIFIED)

    def test_every_label_parses(self) -> None:
        for labels in WEIGHT_DIVISIONS.values():
            for label in labels:
                self.assertIsNotNone(division_limit(label), label)


class LabelParsingTests(unittest.TestCase):
    def test_division_limit(self) -> None:
        self.assertEqual(division_limit("-73kg"), (73.0, False))
        self.assertEqual(division_limit("+100kg"), (100.0, True))
        self.assertIsNone(division_limit("Open"))

    def test_label_limit_reads_first_number(self) -> None:
        self.assertEqual(label_limit("-57kg"), 57.0)
        self.assertEqual(label_limit("U-90 kg"), 90.0)
        self.assertIsNone(label_limit("Open"))

    def test_upper_bound_respects_the_sign(self) -> None:
        self.assertEqual(upper_bound("-66kg"), 66.0)
        self.assertIsNone(upper_bound("+100kg"))
        self.assertIsNone(upper_bound("+78 kg"))
        self.assertEqual(upper_bound("U-90 kg"), 90.0)
        self.assertIsNone(upper_bound("Open"))


if __name__ == "__main__":
    unittest.main()
