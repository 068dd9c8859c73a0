"""Bucket classification.

Maps a free-text transaction category to one of the six fixed budget buckets.
Each space has its own ordered rule table; the first pattern that matches the
lower-cased category wins, and ``Miscellaneous`` is the fallback. Explicit
user selection always takes precedence over this heuristic, so callers only
classify when no bucket was given.
"""

import re
from typing import Optional

from ..domain import BUCKETS, SPACES
from ..errors import ValidationFailed

DEFAULT_BUCKET = "Miscellaneous"

# ─────────────────────────────────────────────────────────────────────────────
# Rule tables  (pattern, bucket); first match wins
# ─────────────────────────────────────────────────────────────────────────────

_BUSINESS_RULES: list[tuple[str, str]] = [
    (r"payroll|salary|wage|staff",                                                   "Essential"),
    (r"rent|lease|utilities|power|internet|office|suppl|subscription|software|tools", "Essential"),
    (r"tax|fee|charges|compliance",                                                  "Essential"),
    (r"equipment|device|laptop|machine|hardware",                                    "Investments"),
    (r"marketing|ads?|advert|growth|campaign",                                       "Investments"),
    (r"travel|flight|hotel|transport",                                               "Miscellaneous"),
    (r"loan|credit|interest|repay",                                                  "Debt Financing"),
]

_PERSONAL_RULES: list[tuple[str, str]] = [
    (r"rent|housing|mortgage|utilities|bills|electric|water|internet",               "Essential"),
    (r"food|grocer|groceries|transport|fuel|petrol|gas|health|medical|pharmacy",     "Essential"),
    (r"subscription|netflix|spotify|dstv|gotv|airtime|data",                         "Free Spending"),
    (r"shopping|clothing|entertainment|eating out|restaurant|dining",                "Free Spending"),
    (r"saving|savings|reserve",                                                      "Savings"),
    (r"investment|stocks?|crypto|mutual|fund",                                       "Investments"),
    (r"loan|credit|interest|repay",                                                  "Debt Financing"),
]


def _compile(rules: list[tuple[str, str]]) -> list[tuple[re.Pattern, str]]:
    return [(re.compile(pattern), bucket) for pattern, bucket in rules]


RULES: dict[str, list[tuple[re.Pattern, str]]] = {
    "personal": _compile(_PERSONAL_RULES),
    "business": _compile(_BUSINESS_RULES),
}

# Business space shows different names; the stored identifiers never change.
BUSINESS_LABELS: dict[str, str] = {
    "Essential": "Operating Costs",
    "Savings": "Reserves",
    "Free Spending": "Discretionary",
    "Investments": "Growth",
    "Miscellaneous": "Misc Ops",
    "Debt Financing": "Loans & Credit",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core matching
# ─────────────────────────────────────────────────────────────────────────────


def require_space(space: str) -> str:
    if space not in SPACES:
        raise ValidationFailed(f"Unsupported space {space!r}; expected one of {', '.join(SPACES)}")
    return space


def require_bucket(bucket: Optional[str]) -> Optional[str]:
    """Pass ``None`` through; reject anything outside the fixed bucket set."""
    if bucket is not None and bucket not in BUCKETS:
        raise ValidationFailed(f"Unknown budget bucket {bucket!r}")
    return bucket


def classify_bucket(category: str, space: str) -> str:
    """Return the bucket for ``category`` in ``space``, or ``Miscellaneous``."""
    text = (category or "").lower()
    for pattern, bucket in RULES[require_space(space)]:
        if pattern.search(text):
            return bucket
    return DEFAULT_BUCKET


def bucket_label(bucket: str, space: str) -> str:
    if space == "business":
        return BUSINESS_LABELS.get(bucket, bucket)
    return bucket
