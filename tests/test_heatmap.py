"""Tests for the state choropleth (Q5) using a small local basemap."""

import json
import os
import re

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

import create_d3_heatmap as q5
from fines_data import MapDataError, load_enforcement_patterns


@pytest.fixture
def patterns(data_dir):
    return load_enforcement_patterns(data_dir)


def test_build_lookup(patterns):
    lookup = q5.build_lookup(patterns)

    assert sorted(lookup) == [2022, 2023]
    assert lookup[2023] == {"NSW": 120000.0, "QLD": 52000.0}


def test_build_lookup_last_row_wins():
    df = pd.DataFrame({"year": [2020, 2020], "jurisdiction": ["SA", "SA"], "fines": [1.0, 2.0]})

    assert q5.build_lookup(df)[2020]["SA"] == 2.0


@pytest.mark.parametrize(
    "code, year, expected",
    [("NSW", 2022, 150000.0), ("QLD", 2022, 0), ("NSW", 1999, 0), (None, 2022, 0)],
)
def test_lookup_value_defaults_to_zero(patterns, code, year, expected):
    assert q5.lookup_value(q5.build_lookup(patterns), code, year) == expected


def test_color_for_endpoints():
    assert q5.color_for(0, 100) == q5.MINT.lower()
    assert q5.color_for(100, 100) == q5.DRAGONFRUIT.lower()
    assert q5.color_for(250, 100) == q5.DRAGONFRUIT.lower()
    assert q5.color_for(5, 0) == q5.MINT.lower()


def test_color_for_is_between_endpoints():
    middle = q5.color_for(50, 100)

    assert middle not in (q5.MINT.lower(), q5.DRAGONFRUIT.lower())
    assert middle.startswith("#") and len(middle) == 7


def test_year_colors_covers_every_state(patterns):
    colors = q5.year_colors(q5.build_lookup(patterns), 150000.0)

    assert set(colors) == {2022, 2023}
    assert set(colors[2022]) == set(q5.STATE_CODES.values())
    assert colors[2022]["NSW"] == q5.DRAGONFRUIT.lower()
    assert colors[2022]["QLD"] == q5.MINT.lower()


def test_play_sequence_wraps():
    years = [2021, 2022, 2023]

    assert q5.play_sequence(years, 2021) == 2022
    assert q5.play_sequence(years, 2023) == 2021
    assert q5.play_sequence([2020, 2023], 2021) == 2023


def test_load_state_geometries_from_local_file(states_geojson, tmp_path):
    states = q5.load_state_geometries(str(states_geojson), cache_path=str(tmp_path / "cache.json"))

    assert states["JURISDICTION"].tolist() == ["NSW", "VIC"]
    assert list(states.columns) == ["STATE_NAME", "JURISDICTION", "label_x", "label_y", "geometry"]
    nsw = states.iloc[0]
    assert 141 < nsw["label_x"] < 153
    assert -37 < nsw["label_y"] < -29


def test_load_state_geometries_accepts_census_names(tmp_path):
    path = tmp_path / "ste.geojson"
    gpd.GeoDataFrame(
        {"STE_NAME16": ["Tasmania"]}, geometry=[box(144, -43, 148, -40)], crs="EPSG:4326"
    ).to_file(path, driver="GeoJSON")

    states = q5.load_state_geometries(str(path), cache_path=str(tmp_path / "cache.json"))

    assert states["JURISDICTION"].tolist() == ["TAS"]
    assert states["STATE_NAME"].tolist() == ["Tasmania"]


def test_load_state_geometries_without_australian_states(tmp_path):
    path = tmp_path / "other.geojson"
    gpd.GeoDataFrame(
        {"STATE_NAME": ["Auckland"]}, geometry=[box(174, -37, 175, -36)], crs="EPSG:4326"
    ).to_file(path, driver="GeoJSON")

    with pytest.raises(MapDataError, match="no Australian states"):
        q5.load_state_geometries(str(path), cache_path=str(tmp_path / "cache.json"))


def test_load_state_geometries_unreadable_file(tmp_path):
    path = tmp_path / "broken.geojson"
    path.write_text("not geojson")

    with pytest.raises(MapDataError, match="Error loading map data."):
        q5.load_state_geometries(str(path), cache_path=str(tmp_path / "cache.json"))


def test_load_state_geometries_download_failure(tmp_path, monkeypatch):
    def fail(*args, **kwargs):
        raise q5.requests.ConnectionError("offline")

    monkeypatch.setattr(q5.requests, "get", fail)

    with pytest.raises(MapDataError):
        q5.load_state_geometries(cache_path=str(tmp_path / "cache.json"))


def test_load_state_geometries_downloads_once(states_geojson, tmp_path, monkeypatch):
    calls = []

    class Response:
        content = states_geojson.read_bytes()

        def raise_for_status(self):
            pass

    def fake_get(url, timeout):
        calls.append(url)
        return Response()

    monkeypatch.setattr(q5.requests, "get", fake_get)
    cache = tmp_path / "cache" / "australian-states.json"

    q5.load_state_geometries(cache_path=str(cache))
    q5.load_state_geometries(cache_path=str(cache))

    assert calls == [q5.GEOJSON_URL]
    assert cache.exists()
    cached = gpd.read_file(cache)
    assert "JURISDICTION" in cached.columns


def test_q5_page_and_png(states_geojson, patterns, tmp_path):
    states = q5.load_state_geometries(str(states_geojson), cache_path=str(tmp_path / "cache.json"))

    page = q5.create_d3_html(states, patterns)
    png = q5.plot_heatmap_png(states, patterns, str(tmp_path / "q5.png"))

    assert 'class="nav-item active" data-page="q5"' in page
    assert 'min="2022" max="2023"' in page
    assert "d3.format('.2s')" in page
    assert (tmp_path / "q5.png").exists()
    assert png == str(tmp_path / "q5.png")


def test_q5_page_plays_in_python_order(states_geojson, patterns, tmp_path):
    states = q5.load_state_geometries(str(states_geojson), cache_path=str(tmp_path / "cache.json"))

    page = q5.create_d3_html(states, patterns)

    match = re.search(r"const playOrder = (\{.*?\});", page)
    assert json.loads(match.group(1)) == {"2022": 2023, "2023": 2022}
    assert "function nextYear" not in page


def test_bad_download_is_not_cached(tmp_path, monkeypatch):
    calls = []

    class Response:
        content = b"<html>rate limited</html>"

        def raise_for_status(self):
            pass

    def fake_get(url, timeout):
        calls.append(url)
        return Response()

    monkeypatch.setattr(q5.requests, "get", fake_get)
    cache = tmp_path / "australian-states.json"

    for _ in range(2):
        with pytest.raises(MapDataError):
            q5.load_state_geometries(cache_path=str(cache))

    assert not cache.exists()
    assert calls == [q5.GEOJSON_URL, q5.GEOJSON_URL]


def test_unwritable_cache_raises_map_error(states_geojson, tmp_path, monkeypatch):
    class Response:
        content = states_geojson.read_bytes()

        def raise_for_status(self):
            pass

    monkeypatch.setattr(q5.requests, "get", lambda url, timeout: Response())
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    with pytest.raises(MapDataError, match="Error saving map data"):
        q5.load_state_geometries(cache_path=str(blocker / "australian-states.json"))


def test_default_cache_is_under_working_directory():
    assert q5.GEOJSON_CACHE == os.path.join("data", "australian-states.json")
