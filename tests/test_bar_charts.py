"""Tests for the fines per 10K (Q3) and detection method (Q4) bar charts."""

import pytest

import plot_detection_methods as q4
import plot_fines_per_10k as q3
from fines_data import load_detection_methods, load_fines_per_10k


@pytest.fixture
def rates(data_dir):
    return load_fines_per_10k(data_dir)


@pytest.fixture
def methods(data_dir):
    return load_detection_methods(data_dir)


def test_filter_rates_is_inclusive(rates):
    filtered = q3.filter_rates(rates, ["NSW", "VIC"], 2022, 2023)

    assert len(filtered) == 4
    assert set(filtered["jurisdiction"]) == {"NSW", "VIC"}


def test_filter_rates_rejects_reversed_range(rates):
    with pytest.raises(ValueError, match="Start year must be less than or equal to end year"):
        q3.filter_rates(rates, ["NSW"], 2023, 2022)


def test_aggregate_rates_averages_and_sorts(rates):
    aggregated = q3.aggregate_rates(q3.filter_rates(rates, ["NSW", "VIC"], 2022, 2023), False)

    assert [r["jurisdiction"] for r in aggregated] == ["NSW", "VIC"]
    nsw = aggregated[0]
    assert nsw["avg_fines_per_10k"] == pytest.approx(225.0)
    assert nsw["total_fines"] == 270000
    assert nsw["data_points"] == 2
    assert nsw["year_range"] == "2022-2023"
    assert nsw["is_single_year"] is False


def test_aggregate_rates_missing_mean_is_zero(rates):
    rates.loc[rates["jurisdiction"] == "TAS", "fines_per_10k"] = float("nan")

    aggregated = q3.aggregate_rates(q3.filter_rates(rates, ["TAS"], 2023, 2023), True)

    assert aggregated[0]["avg_fines_per_10k"] == 0.0


def test_x_max_and_labels(rates):
    aggregated = q3.aggregate_rates(q3.filter_rates(rates, ["NSW", "VIC"], 2022, 2023), False)

    assert q3.x_max(aggregated) == pytest.approx(225 * 1.15)
    assert q3.x_max([]) == pytest.approx(115)
    assert q3.highest_annotation(aggregated) == "↑ Highest: NSW (225.0)"
    assert q3.highest_annotation(aggregated[:1]) is None
    assert q3.value_label(199.6, True) == "200"
    assert q3.value_label(32.54, False) == "32.5"
    assert q3.axis_label(False) == "Average Fines per 10,000 Licenses"


@pytest.mark.parametrize(
    "active, start, end, expected",
    [
        ([], 2022, 2023, "No jurisdictions selected • 2022-2023"),
        (list(q3.COLOR_SCALE), 2023, 2023, "All jurisdictions • 2023"),
        (["VIC"], 2022, 2023, "VIC • 2022-2023"),
        (["VIC", "NSW"], 2022, 2023, "NSW, VIC • 2022-2023"),
        (["NSW", "VIC", "QLD", "WA"], 2022, 2023, "4 jurisdictions • 2022-2023"),
    ],
)
def test_subtitle(active, start, end, expected):
    assert q3.subtitle(active, start, end) == expected


def test_q3_page(rates):
    page = q3.create_d3_html(rates)

    assert 'class="nav-item active" data-page="q3"' in page
    assert '<option value="2023"' in page


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "0.0"),
        (999, "1.0k"),
        (12345, "12k"),
        (152000, "150k"),
        (1500000, "1.5M"),
        (125, "130"),
        (1250, "1.3k"),
        (12500, "13k"),
        (125000, "130k"),
    ],
)
def test_si_format(value, expected):
    assert q4.si_format(value) == expected


def test_format_share():
    assert q4.format_share(50.0) == "50%"
    assert q4.format_share(85.714) == "85.7%"


def test_stack_layers_absolute(methods):
    camera, police = q4.stack_layers(methods, "absolute")

    assert camera["key"] == "camera"
    assert camera["segments"][0] == {
        "jurisdiction": "NSW", "y0": 0.0, "y1": 140000.0,
        "value": 140000.0, "count": 140000.0, "total": 152000.0, "share": "92.1%",
    }
    assert (police["segments"][0]["y0"], police["segments"][0]["y1"]) == (140000.0, 152000.0)


def test_stack_layers_proportional(methods):
    camera, police = q4.stack_layers(methods, "proportional")

    nt_camera = camera["segments"][3]
    nt_police = police["segments"][3]
    assert nt_camera["value"] == 0.0
    assert nt_police["y1"] == pytest.approx(100.0)
    assert nt_police["count"] == 400.0


def test_stack_layers_unknown_mode(methods):
    with pytest.raises(ValueError):
        q4.stack_layers(methods, "log")


def test_y_max(methods):
    assert q4.y_max(methods, "absolute") == pytest.approx(167200)
    assert q4.y_max(methods, "proportional") == pytest.approx(110)


@pytest.mark.parametrize(
    "mode, camera_visible, police_visible, expected",
    [
        ("absolute", True, True, (70000.0, "70k")),
        ("absolute", True, False, (60000.0, "60k")),
        ("absolute", False, True, (70000.0, "10k")),
        ("absolute", False, False, (0.0, "")),
        ("proportional", True, True, (100.0, "100%")),
        ("proportional", False, True, (100.0, "14.3%")),
        ("proportional", False, False, (0.0, "")),
    ],
)
def test_total_label(mode, camera_visible, police_visible, expected):
    row = {"camera": 60000, "police": 10000, "total": 70000}

    assert q4.total_label(row, mode, camera_visible, police_visible) == expected


def test_total_label_camera_only_proportional():
    height, text = q4.total_label({"camera": 60000, "police": 10000, "total": 70000},
                                  "proportional", True, False)

    assert height == pytest.approx(85.714, abs=1e-3)
    assert text == "85.7%"


def test_label_table_keys():
    table = q4.label_table({"camera": 1, "police": 1, "total": 2})

    assert set(table) == {"absolute", "proportional"}
    assert set(table["absolute"]) == {"11", "10", "01", "00"}


def test_summarize_insights(methods):
    insights = q4.summarize_insights(methods)

    assert insights["top"] == {"jurisdiction": "NSW", "total": 152000.0}
    assert insights["pct_camera"] == pytest.approx(201000 / 224900 * 100)
    assert insights["police_heavy_count"] == 2
    assert insights["trend"].startswith("Automated camera enforcement dominates")


def test_summarize_insights_empty(methods):
    insights = q4.summarize_insights(methods.iloc[0:0])

    assert insights["top"] is None
    assert insights["trend"] == "No data selected."


@pytest.mark.parametrize(
    "args, expected_start",
    [
        ((2, 20, 80, 2), "Enforcement is broadly uniform"),
        ((3, 30, 65, 2), "Most jurisdictions rely on police"),
        ((3, 50, 50, 1), "Enforcement is balanced"),
        ((3, 35, 65, 1), "Enforcement patterns are mixed"),
    ],
)
def test_trend_summary_rule_order(args, expected_start):
    assert q4.trend_summary(*args).startswith(expected_start)


def test_q3_q4_build(data_dir, tmp_path):
    output_dir = tmp_path / "site"

    q3.build(data_dir, str(output_dir))
    q4.build(data_dir, str(output_dir))

    for name in ("q3.html", "q4.html", "png/q3.png", "png/q4.png"):
        assert (output_dir / name).exists()


def test_total_label_rounds_halves_up():
    row = {"camera": 100000, "police": 25000, "total": 125000}

    assert q4.total_label(row, "absolute") == (125000.0, "130k")


def test_selection_table_covers_every_checkbox_state(methods):
    table = q4.selection_table(methods)

    assert len(table) == 2 ** len(methods)
    everything = table["1111"]
    assert everything["top"] == "NSW"
    assert everything["top_total"] == "150k total fines"
    assert everything["camera"] == f"{201000 / 224900 * 100:.1f}%"
    assert everything["police_heavy"] == 2
    assert everything["y_max"]["proportional"] == pytest.approx(110)

    nothing = table["0000"]
    assert nothing["top"] == "—"
    assert nothing["trend"] == "No data selected."


def test_selection_table_subset_matches_insights(methods):
    table = q4.selection_table(methods)
    subset = methods[methods["jurisdiction"].isin(["TAS", "NT"])]

    view = table[q4.selection_key(methods["jurisdiction"].tolist(), ["TAS", "NT"])]

    assert view["top"] == "TAS"
    assert view["trend"] == q4.summarize_insights(subset)["trend"]
    assert view["y_max"]["absolute"] == pytest.approx(2500 * 1.1)


def test_q4_page_escapes_jurisdiction_names(methods):
    methods.loc[3, "jurisdiction"] = "<NT>"

    page = q4.create_d3_html(methods)

    assert 'value="&lt;NT&gt;"' in page
    assert "<span><NT></span>" not in page


def test_range_table_matches_aggregation(rates):
    table = q3.range_table(rates, [2022, 2023])

    assert set(table) == {"2022-2022", "2022-2023", "2023-2023"}
    entry = table["2022-2023"]
    assert entry["axis"] == "Average Fines per 10,000 Licenses"
    assert entry["years"] == "2022-2023"
    expected = q3.aggregate_rates(q3.filter_rates(rates, q3.COLOR_SCALE, 2022, 2023), False)
    assert [r["jurisdiction"] for r in entry["rows"]] == [r["jurisdiction"] for r in expected]
    nsw = entry["rows"][0]
    assert nsw["label"] == "225.0"
    assert nsw["highest"] == "↑ Highest: NSW (225.0)"
    assert nsw["x_max"] == pytest.approx(225 * 1.15)

    single = table["2023-2023"]
    assert single["axis"] == "Fines per 10,000 Licenses"
    assert single["rows"][0]["label"] == "200"


def test_selection_texts_follow_subtitle():
    codes = ["NSW", "VIC", "QLD"]

    texts = q3.selection_texts(codes)

    assert len(texts) == 8
    assert texts["111"] == "All jurisdictions"
    assert texts["000"] == "No jurisdictions selected"
    assert texts["101"] == "NSW, QLD"
    assert q3.selection_key(["QLD"], codes) == "001"


def test_q3_page_rejects_reversed_range_from_table(rates):
    page = q3.create_d3_html(rates)

    assert '"2022-2023"' in page
    assert '"2023-2022"' not in page
    assert q3.YEAR_RANGE_ERROR in page
