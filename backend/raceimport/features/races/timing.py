"""Time and category helpers shared by every results source."""

from __future__ import annotations

import re

# "01:21:37,03" / "1:21:37.123" → fractional part dropped
_FRACTION_RE = re.compile(r"[,.]\d+$")

GENDER_MALE = 1
GENDER_FEMALE = 2

_FEMALE_WORDS = {"f", "female", "women", "woman", "w", "damen", "femenino", "femenina", "mujeres"}
_MALE_WORDS = {"m", "male", "men", "man", "herren", "masculino", "hombres"}


def parse_time(value: str | None) -> int | None:
    """Parse a finish time string to whole seconds.

    Formats:
        "1:21:37"      → 4897
        "01:21:37,03"  → 4897
        "21:37"        → 1297

    Returns None for anything unparseable (never a silent 0).
    """
    if not value or not isinstance(value, str):
        return None
    clean = _FRACTION_RE.sub("", value.strip())
    parts = clean.split(":")
    if len(parts) not in (2, 3):
        return None
    if not all(p.isdigit() for p in parts):
        return None
    nums = [int(p) for p in parts]
    if len(nums) == 3:
        return nums[0] * 3600 + nums[1] * 60 + nums[2]
    return nums[0] * 60 + nums[1]


def format_time(seconds: int | None) -> str | None:
    """Format seconds as a display time.

    1297  → "21:37"
    4897  → "1:21:37"
    """
    if not seconds:
        return None
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def gender_code(value) -> int | None:
    """Normalize a gender value (1/2, "M"/"F", "Male"/"Female") to 1/2."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if int(value) in (GENDER_MALE, GENDER_FEMALE) else None
    text = str(value).strip().lower()
    if text in ("1", "2"):
        return int(text)
    if text in _FEMALE_WORDS:
        return GENDER_FEMALE
    if text in _MALE_WORDS:
        return GENDER_MALE
    return None


def gender_from_label(label: str | None) -> int | None:
    """Infer gender from a category or group label.

    "Female 30-34" → 2, "#1_Men" → 1, "Open F" → 2, "Overall" → None
    """
    if not label:
        return None
    words = re.findall(r"[a-z]+", label.lower())
    # Female vocabulary first: "female" contains "male"
    if any(w in _FEMALE_WORDS for w in words):
        return GENDER_FEMALE
    if any(w in _MALE_WORDS for w in words):
        return GENDER_MALE
    return None
