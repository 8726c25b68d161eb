"""
Load and parse the mobile phone fines CSV datasets.

Every chart reads its CSV through load_csv, which tries a few relative
locations before giving up, then reshapes the rows into a tidy DataFrame.
"""

from pathlib import Path

import numpy as np
import pandas as pd

SCRIPT_DIR = Path(__file__).resolve().parent

ANNUAL_FINES_CSV = 'Q1_Annual_fines_for_mobile_phone_use.csv'
JURISDICTION_FINES_CSV = 'Q2_Annual_fines_by_jurisdiction.csv'
FINES_PER_10K_CSV = 'Q3_Fines_per_10k_by_jurisdiction.csv'
DETECTION_METHODS_CSV = 'Q4_Camera_vs_police_fines_by_jurisdiction.csv'
ENFORCEMENT_PATTERNS_CSV = 'Q5_Mobile_phone_enforcement_patterns.csv'

JURISDICTIONS = ['ACT', 'NSW', 'NT', 'QLD', 'SA', 'TAS', 'VIC', 'WA']

JURISDICTION_NAMES = {
    'ACT': 'Australian Capital Territory',
    'NSW': 'New South Wales',
    'NT': 'Northern Territory',
    'QLD': 'Queensland',
    'SA': 'South Australia',
    'TAS': 'Tasmania',
    'VIC': 'Victoria',
    'WA': 'Western Australia',
}


class FinesDataError(Exception):
    """Base error for chart data that cannot be used."""


class DataLoadError(FinesDataError):
    """A CSV could not be found, read, or parsed."""


class MapDataError(FinesDataError):
    """The basemap GeoJSON could not be fetched or read."""


def candidate_paths(filename, data_dir=None):
    """Return the ordered, de-duplicated places to look for a data file."""
    paths = []
    if data_dir is not None:
        paths.append(Path(data_dir) / filename)
    paths += [
        Path('data') / filename,
        Path('.') / 'data' / filename,
        Path('..') / 'data' / filename,
        SCRIPT_DIR / 'data' / filename,
    ]

    seen = set()
    unique = []
    for path in paths:
        key = path.resolve()
        if key in seen:
            continue
        seen.add(key)
        unique.append(path)
    return unique


def load_csv(filename, data_dir=None):
    """Read a CSV from the first candidate path that yields rows."""
    for path in candidate_paths(filename, data_dir):
        print(f"Trying to load data from: {path}")
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as err:
            print(f"  Failed to load from {path}: {err}")
            continue

        if df.empty:
            print(f"  Failed to load from {path}: CSV loaded but empty")
            continue

        df.columns = [str(c).strip() for c in df.columns]
        print(f"Data loaded successfully from {path} - rows: {len(df)}")
        return df

    raise DataLoadError(
        f"Could not load CSV. Expected at: data/{filename} "
        "(or similar relative paths)."
    )


def to_number(value, default=None):
    """Parse a loosely typed numeric cell, returning default when blank or invalid."""
    if value is None:
        return default
    if isinstance(value, (int, float, np.integer, np.floating)):
        return default if pd.isna(value) else float(value)

    text = str(value).strip().replace(',', '')
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    return default if np.isnan(number) else number


def pick_column(df, *names):
    """Return the first of several accepted header spellings present in df."""
    for name in names:
        if name in df.columns:
            return name
    return None


def _numeric_column(df, column, default=None):
    if column is None:
        return pd.Series([default] * len(df), index=df.index, dtype=float)
    return df[column].map(lambda v: to_number(v, default)).astype(float)


def _years(df, column):
    years = _numeric_column(df, column)
    return years.where(years.notna() & (years == years.round()))


def load_annual_fines(data_dir=None):
    """Load annual police and camera fines (Q1)."""
    raw = load_csv(ANNUAL_FINES_CSV, data_dir)

    year_col = pick_column(raw, 'YEAR', 'Year', 'year')
    police_col = pick_column(raw, 'Police issued fines', 'Police', 'police')
    camera_col = pick_column(raw, 'Camera issued fines', 'Camera', 'camera')

    df = pd.DataFrame({
        'year': _years(raw, year_col),
        'police': _numeric_column(raw, police_col),
        'camera': _numeric_column(raw, camera_col),
    })
    df = df[df['year'].notna()]
    if df.empty:
        raise DataLoadError('Parsed CSV is empty or missing Year values')

    df['year'] = df['year'].astype(int)
    return df.sort_values('year', kind='stable').reset_index(drop=True)


def load_jurisdiction_fines(data_dir=None):
    """Load annual fines per jurisdiction and reshape wide to long (Q2)."""
    raw = load_csv(JURISDICTION_FINES_CSV, data_dir)

    year_col = next((c for c in raw.columns if c.upper() == 'YEAR'), None)
    if year_col is None:
        raise DataLoadError('CSV has no YEAR column')
    jurisdiction_cols = [c for c in raw.columns if c != year_col]

    wide = raw.copy()
    wide['year'] = _years(raw, year_col)
    wide = wide[wide['year'].notna()]

    long_df = wide.melt(
        id_vars=['year'],
        value_vars=jurisdiction_cols,
        var_name='jurisdiction',
        value_name='value',
    )
    long_df['value'] = _numeric_column(long_df, 'value')
    long_df['year'] = long_df['year'].astype(int)

    print(f"Parsed rows (long): {len(long_df)}")
    return long_df.sort_values(['jurisdiction', 'year'], kind='stable').reset_index(drop=True)


def load_fines_per_10k(data_dir=None):
    """Load fines and licences per jurisdiction per year (Q3)."""
    raw = load_csv(FINES_PER_10K_CSV, data_dir)

    jurisdiction_col = pick_column(raw, 'JURISDICTION', 'Jurisdiction')
    if jurisdiction_col is None:
        raise DataLoadError('CSV has no JURISDICTION column')

    df = pd.DataFrame({
        'year': _years(raw, pick_column(raw, 'YEAR', 'Year', 'year')),
        'jurisdiction': raw[jurisdiction_col].str.strip(),
        'fines': _numeric_column(raw, pick_column(raw, 'Sum(FINES)', 'FINES', 'Fines')),
        'licenses': _numeric_column(raw, pick_column(raw, 'Licenses', 'Licences', 'LICENSES')),
    })

    rate_col = pick_column(raw, 'Fines per 10K', 'Fines per 10k')
    if rate_col is not None:
        df['fines_per_10k'] = _numeric_column(raw, rate_col)
    else:
        licenses = df['licenses'].where(df['licenses'] > 0)
        df['fines_per_10k'] = df['fines'] / licenses * 10000

    df = df[df['year'].notna()].copy()
    if df.empty:
        raise DataLoadError('Parsed CSV is empty or missing Year values')
    df['year'] = df['year'].astype(int)
    return df.reset_index(drop=True)


def load_detection_methods(data_dir=None):
    """Load camera and police fines per jurisdiction, largest total first (Q4)."""
    raw = load_csv(DETECTION_METHODS_CSV, data_dir)

    jurisdiction_col = pick_column(raw, 'JURISDICTION', 'Jurisdiction')
    if jurisdiction_col is None:
        raise DataLoadError('CSV has no JURISDICTION column')

    df = pd.DataFrame({
        'jurisdiction': raw[jurisdiction_col].str.strip(),
        'camera': _numeric_column(raw, pick_column(raw, 'Camera issued fines'), 0.0),
        'police': _numeric_column(raw, pick_column(raw, 'Police issued fines'), 0.0),
    })
    df['total'] = df['camera'] + df['police']
    return df.sort_values('total', ascending=False, kind='stable').reset_index(drop=True)


def load_enforcement_patterns(data_dir=None):
    """Load fines per jurisdiction per year for the heatmap (Q5)."""
    raw = load_csv(ENFORCEMENT_PATTERNS_CSV, data_dir)

    jurisdiction_col = pick_column(raw, 'JURISDICTION', 'Jurisdiction')
    if jurisdiction_col is None:
        raise DataLoadError('CSV has no JURISDICTION column')

    df = pd.DataFrame({
        'year': _years(raw, pick_column(raw, 'YEAR', 'Year', 'year')),
        'jurisdiction': raw[jurisdiction_col].str.strip(),
        'fines': _numeric_column(raw, pick_column(raw, 'FINES', 'Fines'), 0.0),
    })
    df = df[df['year'].notna()].copy()
    if df.empty:
        raise DataLoadError('Parsed CSV is empty or missing Year values')
    df['year'] = df['year'].astype(int)
    return df.reset_index(drop=True)


def padded_extent(values, fraction, fallback=1):
    """Return (min - pad, max + pad) of the non-missing values.

    The pad is (max - min) * fraction, or ``fallback`` when every value is the
    same. With no values at all the extent is (0, 1).
    """
    arr = np.asarray([v for v in values if v is not None], dtype=float)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return 0.0, 1.0

    low, high = float(arr.min()), float(arr.max())
    pad = (high - low) * fraction or fallback
    return low - pad, high + pad


def records(df):
    """Convert a DataFrame into JSON-ready dicts with NaN as None."""
    rows = []
    for row in df.to_dict(orient='records'):
        rows.append({key: _plain(value) for key, value in row.items()})
    return rows


def _plain(value):
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return None if np.isnan(value) else float(value)
    return value
