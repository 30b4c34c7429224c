from __future__ import annotations

import pytest

from app.core.zones import AREA_NAME, ZONES, area_display, area_label, classify_zone


@pytest.mark.parametrize(
    "code, zone",
    [
        ("LRA", "centro"),
        ("lra", "centro"),
        ("  Lis ", "sul"),
        ("PRT", "norte"),
        ("BGC", "norte"),
        ("FAR", "sul"),
        ("STB", "sul"),
        ("CBA", "centro"),
        ("MAD", "ilhas"),
        ("AOC", "ilhas"),
        ("aow", "ilhas"),
        ("AOXYZ", "ilhas"),
        ("XYZ", "desconhecida"),
        ("", "desconhecida"),
        ("   ", "desconhecida"),
        (None, "desconhecida"),
    ],
)
def test_classify_zone(code, zone):
    assert classify_zone(code) == zone


@pytest.mark.parametrize("code", ["", " ", "a", "LRA\n", "ÉVR", "12345", "AO", "M", "lis-2", "🙂"])
def test_classify_zone_is_total(code):
    assert classify_zone(code) in ZONES


def test_every_known_area_is_in_a_real_zone():
    for code in AREA_NAME:
        assert classify_zone(code) != "desconhecida", code


def test_alias_codes_share_a_label():
    # historical aliases; the table keeps the last definition
    assert AREA_NAME["CAS"] == AREA_NAME["CBA"] == "Castelo Branco"
    assert AREA_NAME["SET"] == AREA_NAME["STB"] == "Setúbal"


def test_area_display():
    assert area_display("lra") == "Leiria (LRA)"
    assert area_display("ZZZ") == "ZZZ"
    assert area_display("") == "—"
    assert area_label("AOR") == "Açores (Grupo Oriental)"
    assert area_label("nope") is None
