"""Shared fixtures: small fines CSVs written into a temporary data directory."""

import matplotlib

matplotlib.use("Agg")

import pytest

ANNUAL_CSV = """Year,Police issued fines,Camera issued fines
2018,"41,000",
2019,43500,
2020,38000,52000
2021,30000,120000
2022,21000,164000
2023,18000,150000
2024,15000,148000
"""

JURISDICTION_CSV = """YEAR,ACT,NSW,NT,QLD,SA,TAS,VIC,WA
2021,1200,90000,300,40000,8000,1500,60000,12000
2022,1300,150000,,45000,8500,1400,70000,11000
2023,1100,120000,350,52000,9000,1300,65000,10500
"""

PER_10K_CSV = """YEAR,JURISDICTION,Sum(FINES),Licenses,Fines per 10K
2022,NSW,150000,6000000,250
2023,NSW,120000,6000000,200
2022,VIC,70000,5000000,140
2023,VIC,65000,5000000,130
2023,TAS,1300,400000,32.5
"""

DETECTION_CSV = """JURISDICTION,Camera issued fines,Police issued fines
VIC,60000,10000
NSW,140000,12000
NT,0,400
TAS,1000,1500
"""

ENFORCEMENT_CSV = """YEAR,JURISDICTION,FINES
2022,NSW,150000
2022,VIC,70000
2023,NSW,120000
2023,QLD,52000
"""


@pytest.fixture
def data_dir(tmp_path):
    """Return a directory holding one sample CSV per chart."""

    from fines_data import (
        ANNUAL_FINES_CSV,
        DETECTION_METHODS_CSV,
        ENFORCEMENT_PATTERNS_CSV,
        FINES_PER_10K_CSV,
        JURISDICTION_FINES_CSV,
    )

    directory = tmp_path / "data"
    directory.mkdir()
    (directory / ANNUAL_FINES_CSV).write_text(ANNUAL_CSV)
    (directory / JURISDICTION_FINES_CSV).write_text(JURISDICTION_CSV)
    (directory / FINES_PER_10K_CSV).write_text(PER_10K_CSV)
    (directory / DETECTION_METHODS_CSV).write_text(DETECTION_CSV)
    (directory / ENFORCEMENT_PATTERNS_CSV).write_text(ENFORCEMENT_CSV)
    return directory


@pytest.fixture
def no_fallback_data(tmp_path, monkeypatch):
    """Run from an empty directory so only the given data_dir can match."""

    import fines_data

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(fines_data, "SCRIPT_DIR", tmp_path / "nowhere")
    return tmp_path


@pytest.fixture
def states_geojson(tmp_path):
    """Write a tiny basemap: two boxes standing in for NSW and VIC, plus an island."""

    import geopandas as gpd
    from shapely.geometry import box

    states = gpd.GeoDataFrame(
        {"STATE_NAME": ["New South Wales", "Victoria", "Other Territories"]},
        geometry=[box(141, -37, 153, -29), box(141, -39, 150, -34), box(167, -30, 168, -29)],
        crs="EPSG:4326",
    )
    path = tmp_path / "states.geojson"
    states.to_file(path, driver="GeoJSON")
    return path
