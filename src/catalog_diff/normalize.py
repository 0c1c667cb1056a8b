"""
Normalization of raw code strings into canonical catalog keys.

Two variants are supported:
- ``icd``: letter-prefixed hierarchical codes (ICD-10-GM), e.g. ``A00.0``
- ``ops``: numeric hyphen/dot structured codes (OPS), e.g. ``5-378.b8``

Normalization never raises. Input that matches none of the rules is returned
in its cleaned form so the caller can report it as a format error.
"""

import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

ICD = "icd"
OPS = "ops"
VARIANTS = (ICD, OPS)

# Everything except letters, digits, separators and wildcard characters
_NOISE_RE = re.compile(r"[^A-Za-z0-9.\-*%]")

_ICD_VALID_RE = re.compile(r"^[A-Z]\d{2}(\.\d+)?$")
_OPS_VALID_RE = re.compile(r"^\d-\d+[a-z]*(\.[a-z0-9]+)?$", flags=re.IGNORECASE)

# (a) hyphen, three digits, letter and trailing digits: 5-378b8
_OPS_HYPHEN_LETTER_RE = re.compile(r"^(\d-\d{3})([a-z]\d+)$")
# (b) already well formed, hyphen optional: 1-202, 1202, 538a.90, 5-38a.90
_OPS_WELL_FORMED_RE = re.compile(r"^(\d)-?(\d{2,3}[a-z]?(?:\.[a-z0-9]+)?)$")
# (c1) hyphenated without sub-separator: 5-38a90, 5-37890
_OPS_HYPHEN_NO_DOT_RE = re.compile(r"^(\d-\d{2,3}[a-z]?)(\d+)$")
# (c2) compact with a letter after three digits: 5378b8
_OPS_COMPACT_LETTER_RE = re.compile(r"^(\d)(\d{3})([a-z][0-9a-z]*)$")
# (c3) compact with a letter after two digits: 538a90
_OPS_COMPACT_SHORT_LETTER_RE = re.compile(r"^(\d)(\d{2}[a-z])([0-9a-z]+)$")
# (c4) compact digit run: 537890
_OPS_COMPACT_DIGITS_RE = re.compile(r"^(\d)(\d{3})([0-9a-z]+)$")


def check_variant(variant: str) -> str:
    """Return the lower-cased variant name or raise ``ValueError``."""
    value = str(variant).lower().strip()
    if value not in VARIANTS:
        raise ValueError(f"Unknown catalog variant '{variant}'. Expected one of {VARIANTS}")
    return value


def clean_code(raw) -> str:
    """Strip whitespace and any character that cannot be part of a code."""
    if raw is None:
        return ""
    return _NOISE_RE.sub("", str(raw))


def normalize_icd_code(raw) -> str:
    """
    Canonicalize an ICD code.

    The leading letter is upper-cased and a dot is inserted after the third
    character when the code is longer than three characters and has none.

    Examples:
        >>> normalize_icd_code("a001")
        'A00.1'
        >>> normalize_icd_code(" L40.70 ")
        'L40.70'
    """
    code = clean_code(raw).upper()
    if "." in code:
        return code
    if len(code) > 3 and code[0].isalpha():
        return f"{code[:3]}.{code[3:]}"
    return code


def normalize_ops_code(raw) -> str:
    """
    Canonicalize an OPS code into the form ``D-DDD[letter].rest``.

    Rule order matters and is fixed:

    1. hyphen + letter + trailing digits: the dot goes directly before the
       letter (``5-378b8`` -> ``5-378.b8``)
    2. already well formed: only the hyphen is added if missing
       (``1202`` -> ``1-202``, ``538a.90`` -> ``5-38a.90``)
    3. remaining shapes, first match wins: hyphenated without dot, compact
       with a letter after three digits, compact with a letter after two
       digits, plain compact digit run

    Examples:
        >>> normalize_ops_code("1202")
        '1-202'
        >>> normalize_ops_code("5378b8")
        '5-378.b8'
    """
    code = clean_code(raw).lower()
    if not code:
        return code

    match = _OPS_HYPHEN_LETTER_RE.match(code)
    if match:
        return f"{match.group(1)}.{match.group(2)}"

    match = _OPS_WELL_FORMED_RE.match(code)
    if match:
        return f"{match.group(1)}-{match.group(2)}"

    match = _OPS_HYPHEN_NO_DOT_RE.match(code)
    if match:
        return f"{match.group(1)}.{match.group(2)}"

    match = _OPS_COMPACT_LETTER_RE.match(code)
    if match:
        return f"{match.group(1)}-{match.group(2)}.{match.group(3)}"

    match = _OPS_COMPACT_SHORT_LETTER_RE.match(code)
    if match:
        return f"{match.group(1)}-{match.group(2)}.{match.group(3)}"

    match = _OPS_COMPACT_DIGITS_RE.match(code)
    if match:
        return f"{match.group(1)}-{match.group(2)}.{match.group(3)}"

    logger.debug(f"No OPS normalization rule matched: {raw!r}")
    return code


def normalize(raw, variant: str) -> str:
    """
    Normalize a raw code for the given catalog variant.

    Args:
        raw: Raw code string (user input or file content)
        variant: ``"icd"`` or ``"ops"``

    Returns:
        Canonical key; unparseable input comes back cleaned but otherwise
        unchanged
    """
    variant = check_variant(variant)
    if variant == ICD:
        return normalize_icd_code(raw)
    return normalize_ops_code(raw)


def lookup_key(code) -> str:
    """Case-folded form used by the case-insensitive maps."""
    return str(code).casefold()


def is_valid_format(code: str, variant: str) -> bool:
    """Check whether an already normalized code is well formed."""
    variant = check_variant(variant)
    pattern = _ICD_VALID_RE if variant == ICD else _OPS_VALID_RE
    return bool(pattern.match(code or ""))


def is_wildcard(code: str) -> bool:
    """True if the code contains one of the wildcard characters ``*`` or ``%``."""
    return "*" in code or "%" in code


def detect_code_type(code: str) -> Optional[str]:
    """
    Guess the catalog variant of a raw code.

    A leading letter means ICD, a leading digit means OPS.

    Returns:
        ``"icd"``, ``"ops"`` or None if neither applies
    """
    cleaned = clean_code(code)
    if not cleaned:
        return None
    if cleaned[0].isalpha():
        return ICD
    if cleaned[0].isdigit():
        return OPS
    return None
