"""Tests for the police vs camera (Q1) and jurisdiction trend (Q2) charts."""

import json
import re

import pytest

import plot_annual_fines as q1
import plot_jurisdiction_trends as q2
from fines_data import DataLoadError, load_annual_fines, load_jurisdiction_fines


@pytest.fixture
def annual(data_dir):
    return load_annual_fines(data_dir)


@pytest.fixture
def by_jurisdiction(data_dir):
    return load_jurisdiction_fines(data_dir)


def test_build_series_skips_missing_values(annual):
    series = q1.build_series(annual)

    assert len(series["Police"]) == 7
    assert [p["year"] for p in series["Camera"]] == [2020, 2021, 2022, 2023, 2024]


def test_find_peaks(annual):
    peaks = q1.find_peaks(q1.build_series(annual))

    assert [(p["method"], p["year"]) for p in peaks] == [("Police", 2019), ("Camera", 2022)]
    assert peaks[1]["value"] == 164000


def test_find_peaks_keeps_first_of_ties():
    series = {"Police": [{"year": 2020, "value": 5.0}, {"year": 2021, "value": 5.0}], "Camera": []}

    peaks = q1.find_peaks(series)

    assert len(peaks) == 1
    assert peaks[0]["year"] == 2020


def test_y_domain_pads_ten_percent(annual):
    low, high = q1.y_domain(q1.build_series(annual))

    assert low == pytest.approx(15000 - 14900)
    assert high == pytest.approx(164000 + 14900)


def test_filter_through_year(annual):
    filtered = q1.filter_through_year(q1.build_series(annual), 2021)

    assert [p["year"] for p in filtered["Camera"]] == [2020, 2021]
    assert filtered["Police"][-1]["year"] == 2021


def test_annotations_only_inside_plotted_years(annual):
    kinds = [note["kind"] for note in q1.annotations(annual)]
    assert kinds == ["marker", "span"]

    early = annual[annual["year"] <= 2019]
    assert q1.annotations(early) == []


def test_q1_page_embeds_series_and_marks_nav(annual):
    page = q1.create_d3_html(annual)

    assert 'class="nav-item active" data-page="q1"' in page
    assert "Cameras launched here" in page
    assert "Camera Enforcement Peak" in page
    assert "d3.v7" in page


def test_jurisdictions_requires_data(by_jurisdiction):
    assert q2.jurisdictions(by_jurisdiction) == ["ACT", "NSW", "NT", "QLD", "SA", "TAS", "VIC", "WA"]

    with pytest.raises(DataLoadError, match="No jurisdictions"):
        q2.jurisdictions(by_jurisdiction.iloc[0:0])


def test_color_map_cycles_palette():
    codes = [f"J{i}" for i in range(10)]

    colors = q2.color_map(codes)

    assert colors["J0"] == q2.COLOR_PALETTE[0]
    assert colors["J8"] == q2.COLOR_PALETTE[0]


def test_y_domain_caps_lower_bound():
    low, high = q2.y_domain([0, 1000000])

    assert low == q2.Y_LOWER_CAP
    assert high == pytest.approx(1180000)


def test_x_domain_pads_half_a_year():
    assert q2.x_domain([2021, 2023]) == ("2020-07-05", "2023-06-30")


def test_nearest_point_prefers_earlier_on_tie():
    points = [{"year": 2021, "value": 1.0}, {"year": 2022, "value": 2.0}]

    assert q2.nearest_point(points, 2021.5)["year"] == 2021
    assert q2.nearest_point(points, 2021.8)["year"] == 2022
    assert q2.nearest_point([], 2021) is None


def test_series_keeps_missing_values_as_none(by_jurisdiction):
    series = q2.series_by_jurisdiction(by_jurisdiction)

    assert series["NT"][1] == {"year": 2022, "value": None}


def test_q2_page_embeds_json(by_jurisdiction):
    page = q2.create_d3_html(by_jurisdiction)

    match = re.search(r"const jurisdictions = (\[.*?\]);", page)
    assert json.loads(match.group(1))[0] == "ACT"
    assert 'data-page="q2"' in page


def test_build_writes_html_and_png(data_dir, tmp_path):
    output_dir = tmp_path / "site"

    q1.build(data_dir, str(output_dir))
    q2.build(data_dir, str(output_dir), png=False)

    assert (output_dir / "q1.html").exists()
    assert (output_dir / "png" / "q1.png").exists()
    assert (output_dir / "q2.html").exists()
    assert not (output_dir / "png" / "q2.png").exists()


def test_end_labels_mark_last_points(annual):
    labels = q1.end_labels(q1.filter_through_year(q1.build_series(annual), 2021))

    assert [(label["method"], label["year"], label["value"]) for label in labels] == [
        ("Police", 2021, 30000.0),
        ("Camera", 2021, 120000.0),
    ]


def test_year_views_follow_the_slider(annual):
    views = q1.year_views(q1.build_series(annual), range(2018, 2025))

    assert views[2019]["series"]["Camera"] == []
    assert [label["method"] for label in views[2019]["labels"]] == ["Police"]
    assert views[2024]["series"]["Camera"][-1] == {"year": 2024, "value": 148000.0}


def test_q1_page_embeds_views_and_direct_labels(annual):
    page = q1.create_d3_html(annual)

    assert "const views = " in page
    assert "direct-label" in page
    assert ".filter(p => p.year <= selectedYear)" not in page


def test_q1_png_through_year(annual, tmp_path):
    path = tmp_path / "q1_2020.png"

    assert q1.plot_annual_fines_png(annual, str(path), through_year=2020) == str(path)
    assert path.exists()


def test_hover_index_snaps_to_nearest_point():
    points = [{"year": 2021, "value": 1.0}, {"year": 2022, "value": 2.0}, {"year": 2023, "value": None}]

    index = q2.hover_index(points, 2021, 2023)

    assert len(index) == 2 * q2.HOVER_STEPS + 1
    assert index[0] == 0
    assert index[6] == 0
    assert index[7] == 1
    assert index[-1] == 2
    assert q2.hover_index([], 2021, 2023) == []


def test_q2_page_embeds_hover_table(by_jurisdiction):
    page = q2.create_d3_html(by_jurisdiction)

    match = re.search(r"const hover = (\{.*?\});", page)
    hover = json.loads(match.group(1))
    assert len(hover["NSW"]) == 2 * q2.HOVER_STEPS + 1
    assert "function nearestPoint" not in page
