from __future__ import annotations

import pytest

from app.services.alerts import (
    MalformedEnvelope,
    alert_id,
    extract_records,
    level_label,
    map_level,
    normalize,
    normalize_envelope,
)


@pytest.mark.parametrize(
    "token, level",
    [
        ("yellow", "yellow"),
        ("ORANGE", "orange"),
        (" Red ", "red"),
        ("green", "unknown"),
        ("", "unknown"),
        (None, "unknown"),
        (3, "unknown"),
        ("vermelho", "unknown"),
    ],
)
def test_map_level(token, level):
    assert map_level(token) == level


def test_normalize_drops_non_hazard_levels(ipma_snapshot):
    alerts = normalize(ipma_snapshot)
    assert {a.area for a in alerts} == {"LRA", "LIS", "AOC"}
    assert all(a.level in ("yellow", "orange", "red") for a in alerts)


def test_normalize_builds_canonical_alert(ipma_snapshot):
    a = normalize(ipma_snapshot)[0]
    assert a.id == "LRA-Vento-2024-01-01T10:00:00-orange"
    assert a.title == "Vento"
    assert a.startsAt == "2024-01-01T10:00:00"
    assert a.endsAt == "2024-01-01T21:00:00"
    assert a.sourceName == "IPMA"
    assert a.sourceUrl == "https://www.ipma.pt/"
    assert a.zone == "centro"


def test_normalize_is_idempotent(ipma_snapshot):
    first = [a.id for a in normalize(ipma_snapshot)]
    second = [a.id for a in normalize(ipma_snapshot)]
    assert first == second


def test_duplicate_records_collapse_to_one_alert(ipma_snapshot):
    alerts = normalize(ipma_snapshot + ipma_snapshot)
    ids = [a.id for a in alerts]
    assert len(ids) == len(set(ids)) == 3


def test_alternative_field_spellings():
    raw = [
        {"area": "FAR", "type": "Tempo Quente", "level": "Yellow", "start": "2024-07-01T12:00:00"},
        {"areaCode": "BRG", "awarenessType": "Nevoeiro", "awarenessLevel": "red"},
        {"properties": {"idAreaAviso": "MAD", "awarenessTypeName": "Chuva", "awarenessLevelID": "orange"}},
    ]
    alerts = normalize(raw)
    assert [(a.area, a.title, a.level) for a in alerts] == [
        ("FAR", "Tempo Quente", "yellow"),
        ("BRG", "Nevoeiro", "red"),
        ("MAD", "Chuva", "orange"),
    ]
    assert alerts[1].startsAt is None
    assert alerts[1].id == "BRG-Nevoeiro--red"


def test_missing_type_label_defaults():
    (a,) = normalize([{"idAreaAviso": "VSE", "awarenessLevelID": "yellow"}])
    assert a.title == "Aviso"


def test_malformed_records_are_skipped_not_fatal():
    raw = [None, 42, "LRA", [], {}, {"foo": "bar"}, {"idAreaAviso": "GDA", "awarenessLevelID": "red"}]
    alerts = normalize(raw)
    assert [a.area for a in alerts] == ["GDA"]


def test_normalizer_never_fabricates_coordinates(ipma_snapshot):
    for a in normalize(ipma_snapshot):
        dumped = a.model_dump()
        assert "lat" not in dumped and "latitude" not in dumped


def test_extract_records_envelopes(ipma_snapshot):
    assert extract_records(ipma_snapshot) is ipma_snapshot
    assert extract_records({"data": ipma_snapshot}) is ipma_snapshot
    assert extract_records({"alerts": []}) == []
    with pytest.raises(MalformedEnvelope):
        extract_records({"unexpected": True})
    with pytest.raises(MalformedEnvelope):
        extract_records("nope")


def test_normalize_envelope(ipma_snapshot):
    assert len(normalize_envelope({"warnings": ipma_snapshot})) == 3


def test_alert_id_and_labels():
    assert alert_id("LIS", "Chuva", None, "yellow") == "LIS-Chuva--yellow"
    assert level_label("red") == "VERMELHO"
    assert level_label("unknown") == "ALERTA"
