"""
Fixed field layouts and value decoders for the semicolon-delimited catalog files.

Positions are 0-based and are a contract with the published file format:
changing one of them changes which column is read for every line.
"""

import re
import logging
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DELIMITER = ";"
NOT_SET = "-"

CODES = "codes"
GROUPS = "groups"
CHAPTERS = "chapters"
THREE_DIGIT = "three_digit"
FILE_KINDS = (CODES, GROUPS, CHAPTERS, THREE_DIGIT)

# Minimum number of fields per (variant, kind); shorter lines are skipped
MIN_FIELDS: Dict[str, Dict[str, int]] = {
    "icd": {CODES: 8, GROUPS: 4, CHAPTERS: 2},
    "ops": {CODES: 9, GROUPS: 4, CHAPTERS: 2, THREE_DIGIT: 4},
}

ICD_CODE_FIELDS: Mapping[str, int] = {
    "level": 0,
    "tree_position": 1,
    "subdivision": 2,
    "chapter_id": 3,
    "group_start": 4,
    "alt_code": 5,
    "code": 6,
    "compact_code": 7,
    "description": 8,
    "usage_295": 12,
    "usage_301": 13,
    "sex_restriction": 19,
    "sex_error_type": 20,
    "min_age": 21,
    "max_age": 22,
    "age_error_type": 23,
    "rare_in_central_europe": 24,
    "content_assigned": 25,
    "ifsg_report": 26,
    "ifsg_lab": 27,
}

OPS_CODE_FIELDS: Mapping[str, int] = {
    "level": 0,
    "tree_position": 1,
    "subdivision": 2,
    "chapter_id": 3,
    "group_start": 4,
    "three_digit_code": 5,
    "code": 6,
    "side_required": 7,
    "description": 8,
    "validity_khg": 9,
    "additional_code": 10,
    "one_time_code": 11,
}

ICD_GROUP_FIELDS: Mapping[str, int] = {"range_start": 0, "range_end": 1, "chapter_id": 2, "description": 3}
OPS_GROUP_FIELDS: Mapping[str, int] = {"chapter_id": 0, "range_start": 1, "range_end": 2, "description": 3}
CHAPTER_FIELDS: Mapping[str, int] = {"id": 0, "description": 1}
THREE_DIGIT_FIELDS: Mapping[str, int] = {"chapter_id": 0, "group_code": 1, "code": 2, "description": 3}

# Crosswalk layouts: old code, new code, forward flag, backward flag
MIGRATION_FIELDS: Dict[str, Mapping[str, int]] = {
    "icd": {"old": 0, "new": 1, "auto_forward": 2, "auto_backward": 3},
    "ops": {"old": 0, "new": 2, "auto_forward": 4, "auto_backward": 5},
}
MIGRATION_MIN_FIELDS = 4
AUTOMATIC_FLAG = "A"
UNDEFINED_CODES = ("", "UNDEF")

NON_TERMINAL_MARKER = "N"

USAGE_LABELS: Mapping[str, str] = {
    "P": "primary coding allowed",
    "O": "star code only",
    "Z": "exclamation-mark code only",
    "V": "not for coding",
}

SEX_LABELS: Mapping[str, str] = {
    "9": "none",
    "M": "male only",
    "W": "female only",
}

ERROR_TYPE_LABELS: Mapping[str, str] = {
    "9": "irrelevant",
    "M": "mandatory error",
    "K": "optional error",
}

YES_NO_LABELS: Mapping[str, str] = {
    "J": "yes",
    "N": "no",
    "1": "yes",
    "0": "no",
}

# Which label table decodes which record field
FIELD_LABELS: Mapping[str, Mapping[str, str]] = {
    "usage_295": USAGE_LABELS,
    "usage_301": USAGE_LABELS,
    "sex_restriction": SEX_LABELS,
    "sex_error_type": ERROR_TYPE_LABELS,
    "age_error_type": ERROR_TYPE_LABELS,
    "rare_in_central_europe": YES_NO_LABELS,
    "content_assigned": YES_NO_LABELS,
    "ifsg_report": YES_NO_LABELS,
    "ifsg_lab": YES_NO_LABELS,
    "side_required": YES_NO_LABELS,
    "validity_khg": YES_NO_LABELS,
    "additional_code": YES_NO_LABELS,
    "one_time_code": YES_NO_LABELS,
}

AGE_FIELDS = ("min_age", "max_age")
NO_AGE_LIMIT = "9999"
_AGE_RE = re.compile(r"^([tj])(\d+)$", flags=re.IGNORECASE)


def field_at(parts, position: int) -> str:
    """Return the stripped field at ``position`` or an empty string."""
    if position < len(parts):
        return parts[position].strip()
    return ""


def decode_flag(value: str, labels: Mapping[str, str]) -> str:
    """
    Map an enumerated flag to its label.

    Empty values become ``"-"``; unknown values pass through unchanged so a new
    flag code shows up raw instead of breaking the parse.
    """
    value = (value or "").strip()
    if not value:
        return NOT_SET
    label = labels.get(value.upper())
    if label is None:
        logger.debug(f"Unknown flag value {value!r}, keeping raw text")
        return value
    return label


def decode_age(value: str) -> Optional[str]:
    """
    Decode the day/year age micro-format.

    Examples:
        >>> decode_age("t028")
        '28 days'
        >>> decode_age("j001")
        '1 year'
        >>> decode_age("9999") is None
        True
    """
    value = (value or "").strip()
    if not value or value == NO_AGE_LIMIT:
        return None
    match = _AGE_RE.match(value)
    if not match:
        logger.debug(f"Unknown age value {value!r}, keeping raw text")
        return value
    number = int(match.group(2))
    if match.group(1).lower() == "t":
        unit = "day" if number == 1 else "days"
    else:
        unit = "year" if number == 1 else "years"
    return f"{number} {unit}"


def decode_field(name: str, value: str):
    """Decode one raw code-file field by record field name."""
    if name in AGE_FIELDS:
        return decode_age(value)
    labels = FIELD_LABELS.get(name)
    if labels is not None:
        return decode_flag(value, labels)
    return value
