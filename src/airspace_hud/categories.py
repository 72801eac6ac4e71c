"""Category and group naming for airspace data files.

Most files are one category each (the file's base name).  The multi-category
source lumps every Japanese airspace together, so its features get a
sub-category from their names; the order of SUB_CATEGORY_PATTERNS matters,
the first match wins."""

import re

OTHER_SUB_CATEGORY = "OTHER"
OTHER_GROUP = "Other"

# declared "type" code of JSDF airspaces in the multi-category source
JSDF_TYPE_CODE = 2

SUB_CATEGORY_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("CTR", re.compile(r"\bCTR\b", re.IGNORECASE)),
    ("INFO ZONE", re.compile(r"\bINFO\s*ZONE\b", re.IGNORECASE)),
    ("TCA", re.compile(r"\bTCA\b", re.IGNORECASE)),
    ("ACA", re.compile(r"\bACA\b", re.IGNORECASE)),
    ("PCA", re.compile(r"\bPCA\b", re.IGNORECASE)),
    ("HELI", re.compile(r"\bHELI\b", re.IGNORECASE)),
    ("AP", re.compile(r"\bAP\b", re.IGNORECASE)),
    ("GP", re.compile(r"\bGP\b", re.IGNORECASE)),
    ("SURFACE", re.compile(r"\b(APPROACH|HORIZONTAL|CONICAL)\s+SURFACE\b", re.IGNORECASE)),
    ("JSDF", re.compile(r"\b(JS?DF|JASDF)\b", re.IGNORECASE)),
    ("TRAINING AREA", re.compile(r"\bTRAINING\s+AREA\b", re.IGNORECASE)),
    ("CAMP", re.compile(r"\bCAMP\b", re.IGNORECASE)),
]

MAJOR_CATEGORIES: dict[str, str] = {
    "CTR": "Control & Information Zones",
    "INFO ZONE": "Control & Information Zones",
    "TCA": "Terminal Control Airspace",
    "ACA": "Terminal Control Airspace",
    "PCA": "Positive Control Areas",
    "HELI": "Aerodrome & Heliport Airspaces",
    "AP": "Aerodrome & Heliport Airspaces",
    "GP": "Aerodrome & Heliport Airspaces",
    "SURFACE": "Obstacle Limitation Surfaces",
    "JSDF": "Special Use & Military Airspace",
    "TRAINING AREA": "Special Use & Military Airspace",
    "CAMP": "Special Use & Military Airspace",
}

_GROUP_SEPARATOR = re.compile(r"[ \-_]")
_FEATURE_NUMBER_SUFFIX = re.compile(r"-[0-9]+[A-Z]*$")
_FEATURE_LETTER_SUFFIX = re.compile(r"-[A-Z]{1,3}$")


def sub_category(name: str, type_code: int = 0) -> str:
    """Sub-category of a multi-category source feature."""
    if type_code == JSDF_TYPE_CODE:
        return "JSDF"
    upper = (name or "").upper()
    for label, pattern in SUB_CATEGORY_PATTERNS:
        if pattern.search(upper):
            return label
    return OTHER_SUB_CATEGORY


def major_category(sub: str) -> str:
    return MAJOR_CATEGORIES.get(sub, OTHER_GROUP)


def parse_group_name(category: str) -> str:
    """Group of a per-file category: the text before the first space, dash
    or underscore.  "class_b" -> "class", "Restricted" -> "Restricted"."""
    return _GROUP_SEPARATOR.split(category, maxsplit=1)[0]


def parse_feature_group_name(name) -> str:
    """Strip a sector suffix so the sectors of one airspace group together:
    "TOKYO TCA-2B" -> "TOKYO TCA", "NAHA ACA-E" -> "NAHA ACA"."""
    if not name:
        return ""
    base = _FEATURE_NUMBER_SUFFIX.sub("", name, count=1)
    if base == name:
        base = _FEATURE_LETTER_SUFFIX.sub("", name, count=1)
    return base.strip()
