from __future__ import annotations

from .age_category import UNCLASSIFIED, resolve_age_category
from .eligibility import EligibilityConflict, check_roster_assignment, validate_eligibility
from .specs import AgeCategory, Ruleset, WeightClass
from .weight_class import WEIGHT_DIVISIONS, bucket_weight_class

__all__ = [
    "UNCLASSIFIED",
    "WEIGHT_DIVISIONS",
    "AgeCategory",
    "EligibilityConflict",
    "Ruleset",
    "WeightClass",
    "bucket_weight_class",
    "check_roster_assignment",
    "resolve_age_category",
    "validate_eligibility",
]
