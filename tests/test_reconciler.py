from __future__ import annotations

import asyncio

import pytest

from app.core.contracts import Cluster, GeoPoint, LatLng
from app.core.errors import RenderSurfaceUnavailable, SurfaceStateError
from app.services.reconciler import (
    CLUSTER_COLOR,
    FALLBACK_COLOR,
    CallbackRef,
    MarkerReconciler,
    build_popup,
    marker_color,
)
from app.services.surfaces import (
    DeckSurface,
    GeoJSONSurface,
    backends,
    create_surface,
    hex_to_rgba,
    surface_loader,
)


POINTS = [
    GeoPoint(latitude=39.74, longitude=-8.81, kind="issue", status="open", id="1", title="Buraco na estrada"),
    GeoPoint(latitude=39.75, longitude=-8.80, kind="issue", status="resolved", id="2"),
    GeoPoint(latitude=39.60, longitude=-8.70, kind="help", status="need", id="h1", title="Preciso de água"),
    GeoPoint(latitude=39.61, longitude=-8.71, kind="issue", status="weird_status"),
]
CLUSTERS = [Cluster(centroid=LatLng(lat=39.745, lng=-8.805), weight=2.6, count=2, radius_m=12000)]


async def _ready(**kw) -> MarkerReconciler:
    r = MarkerReconciler(**kw)
    assert await r.initialize(surface_loader("geojson")) is True
    return r


def test_marker_colors():
    assert marker_color("open") == "#ef4444"
    assert marker_color("in_progress") == "#f59e0b"
    assert marker_color("resolved") == "#16a34a"
    assert marker_color("need") == "#dc2626"
    assert marker_color("offer") == "#059669"
    assert marker_color("archived") == FALLBACK_COLOR


@pytest.mark.anyio
async def test_reconcile_draws_one_marker_per_point():
    r = await _ready()
    assert r.reconcile(POINTS, CLUSTERS)

    s = r.surface
    assert s.marker_count == len(POINTS)
    assert s.overlay_count == 1
    features = s.snapshot()["features"]
    cluster_feature = features[0]
    assert cluster_feature["properties"]["label"] == "2 ocorrências"
    assert cluster_feature["properties"]["color"] == CLUSTER_COLOR
    colors = [f["properties"]["color"] for f in features[1:]]
    assert colors == ["#ef4444", "#16a34a", "#dc2626", FALLBACK_COLOR]


@pytest.mark.anyio
async def test_reconcile_is_idempotent():
    r = await _ready()
    for _ in range(3):
        r.reconcile(POINTS, CLUSTERS)
    assert r.surface.marker_count == len(POINTS)
    assert r.surface.overlay_count == 1


@pytest.mark.anyio
async def test_full_replace_removes_stale_markers():
    r = await _ready()
    r.reconcile(POINTS, CLUSTERS)
    r.reconcile(POINTS[:1])
    assert r.surface.marker_count == 1
    assert r.surface.overlay_count == 0
    assert r.marker_ids == ["issue:1"]


@pytest.mark.anyio
async def test_duplicate_ids_get_distinct_markers():
    r = await _ready()
    dup = [POINTS[0], POINTS[0]]
    r.reconcile(dup)
    assert r.marker_ids == ["issue:1", "issue:1~1"]


@pytest.mark.anyio
async def test_stale_generation_is_discarded():
    r = await _ready()
    assert r.reconcile(POINTS, generation=2)
    assert r.reconcile(POINTS[:1], generation=1) is False
    assert r.surface.marker_count == len(POINTS)
    assert r.generation == 2


def test_drawing_requires_ready_state():
    r = MarkerReconciler()
    with pytest.raises(SurfaceStateError):
        r.reconcile(POINTS)
    with pytest.raises(SurfaceStateError):
        r.select("issue:1")


@pytest.mark.anyio
async def test_disposed_reconciler_stays_disposed():
    r = await _ready()
    surface = r.surface
    r.dispose()
    r.dispose()

    assert r.state == "disposed"
    assert surface.disposed
    with pytest.raises(SurfaceStateError):
        r.reconcile(POINTS)
    with pytest.raises(SurfaceStateError):
        await r.initialize(surface_loader("geojson"))


@pytest.mark.anyio
async def test_dispose_during_initialization_drops_late_surface():
    release = asyncio.Event()
    built = []

    async def slow_loader():
        await release.wait()
        s = GeoJSONSurface()
        built.append(s)
        return s

    r = MarkerReconciler()
    task = asyncio.create_task(r.initialize(slow_loader))
    await asyncio.sleep(0)
    r.dispose()
    release.set()

    assert await task is False
    assert r.state == "disposed"
    assert r.surface is None
    assert built[0].disposed


@pytest.mark.anyio
async def test_loader_failure_is_reported():
    async def broken():
        raise OSError("tiles unreachable")

    r = MarkerReconciler()
    with pytest.raises(RenderSurfaceUnavailable):
        await r.initialize(broken)
    assert r.state == "uninitialized"
    assert "tiles unreachable" in r.error


@pytest.mark.anyio
async def test_select_builds_popup_and_calls_latest_callback():
    first, second = [], []
    r = await _ready(on_select=first.append)
    r.reconcile(POINTS)

    popup = r.select("issue:1")
    assert popup.title == "Buraco na estrada"
    assert popup.body == "Aberto"
    assert popup.link == "/issue/1"
    assert first == ["1"]

    # swapping the callback must not need a redraw
    r.set_on_select(second.append)
    r.select("help:h1")
    assert first == ["1"]
    assert second == ["h1"]


@pytest.mark.anyio
async def test_select_unknown_marker():
    r = await _ready()
    r.reconcile(POINTS)
    with pytest.raises(KeyError):
        r.select("issue:nope")


@pytest.mark.anyio
async def test_anonymous_point_popup_does_not_notify():
    calls = []
    r = await _ready(on_select=calls.append)
    r.reconcile(POINTS)
    popup = r.select("issue:#3")
    assert popup.title == "Ocorrência"
    assert popup.body == "weird status"
    assert popup.link is None
    assert calls == []


def test_callback_ref_without_callback():
    ref = CallbackRef()
    assert ref("x") is None


def test_help_popup_has_no_issue_link():
    popup = build_popup("help:h1", POINTS[2])
    assert popup.link is None
    assert popup.body == "Pedido de ajuda"


def test_create_surface_rejects_unknown_backend():
    assert backends() == ("deck", "geojson")
    with pytest.raises(RenderSurfaceUnavailable):
        create_surface("leaflet")


def test_hex_to_rgba():
    assert hex_to_rgba("#ff5722", alpha=40) == [255, 87, 34, 40]
    assert hex_to_rgba("bogus") == [59, 130, 246, 230]


@pytest.mark.anyio
async def test_deck_backend_renders_layers():
    pytest.importorskip("pydeck")
    r = MarkerReconciler()
    await r.initialize(surface_loader("deck"))
    r.reconcile(POINTS, CLUSTERS)
    r.set_view(39.7, -8.8, 9)

    surface = r.surface
    assert isinstance(surface, DeckSurface)
    snap = surface.snapshot()
    assert snap["type"] == "DeckSnapshot"
    assert len(snap["markers"]) == len(POINTS)
    assert snap["overlays"][0]["label"] == "2 ocorrências"

    deck = surface.deck()
    assert len(deck.layers) == 3
    assert deck.initial_view_state.zoom == 9
