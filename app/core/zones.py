# app/core/zones.py
"""
IPMA warning-area codes → Portuguese regions.

Used by the alert filters and display labels. The normalizer never depends on
this module for correctness; zones are resolved on read.

Membership sets are mutually exclusive by construction. Islands are checked
first because the Azores codes share the reserved "AO" prefix.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Optional, Tuple


Zone = Literal["norte", "centro", "sul", "ilhas", "desconhecida"]

ZONES: Tuple[Zone, ...] = ("norte", "centro", "sul", "ilhas", "desconhecida")

_ISLAND_PREFIX = "AO"
_ISLAND_CODES = frozenset({"MAD"})

_NORTE = frozenset({"VCT", "BRG", "PRT", "VLR", "BGC"})
_CENTRO = frozenset({"AVE", "CBR", "VSE", "GDA", "LRA", "CAS", "CBA"})
_SUL = frozenset({"LIS", "SAN", "SET", "STB", "EVR", "BEJ", "FAR"})


# Hand-curated from the IPMA feed. Rows are applied in order and the last
# definition of a code wins: some feeds reuse historical aliases for the same
# district (CAS/CBA Castelo Branco, SET/STB Setúbal).
_AREA_ROWS: List[Tuple[str, str]] = [
    # Continente (distritos)
    ("AVE", "Aveiro"),
    ("BEJ", "Beja"),
    ("BGC", "Bragança"),
    ("BRG", "Braga"),
    ("CBR", "Coimbra"),
    ("CAS", "Castelo Branco"),
    ("CBA", "Castelo Branco"),
    ("EVR", "Évora"),
    ("FAR", "Faro"),
    ("GDA", "Guarda"),
    ("LRA", "Leiria"),
    ("LIS", "Lisboa"),
    ("PRT", "Porto"),
    ("SAN", "Santarém"),
    ("SET", "Setúbal"),
    ("STB", "Setúbal"),
    ("VCT", "Viana do Castelo"),
    ("VLR", "Vila Real"),
    ("VSE", "Viseu"),
    # Ilhas / regiões
    ("MAD", "Madeira"),
    ("AOC", "Açores (Grupo Central)"),
    ("AOR", "Açores (Grupo Oriental)"),
    ("AOW", "Açores (Grupo Ocidental)"),
]

AREA_NAME: Dict[str, str] = dict(_AREA_ROWS)


def _norm_code(code: Optional[str]) -> str:
    return str(code or "").strip().upper()


def classify_zone(area_code: Optional[str]) -> Zone:
    """
    Total mapping from an area code to a region bucket.

    >>> classify_zone(" lra ")
    'centro'
    >>> classify_zone("AOC")
    'ilhas'
    >>> classify_zone("")
    'desconhecida'
    """
    c = _norm_code(area_code)
    if not c:
        return "desconhecida"

    if c in _ISLAND_CODES or c.startswith(_ISLAND_PREFIX):
        return "ilhas"
    if c in _NORTE:
        return "norte"
    if c in _CENTRO:
        return "centro"
    if c in _SUL:
        return "sul"
    return "desconhecida"


def area_label(area_code: Optional[str]) -> Optional[str]:
    """Human-readable district name, or None for unknown codes."""
    return AREA_NAME.get(_norm_code(area_code))


def area_display(area_code: Optional[str]) -> str:
    """"Leiria (LRA)" for known codes, the bare code otherwise, "—" when empty."""
    c = _norm_code(area_code)
    name = AREA_NAME.get(c)
    if name:
        return f"{name} ({c})"
    return c or "—"
