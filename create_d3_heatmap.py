#!/usr/bin/env python3
"""
Create D3.js choropleth heatmap of mobile phone fines by Australian state (Q5).

States are shaded from mint (no fines) to dragonfruit (highest fines of any
state in any year). A slider and play button step through the years.
"""

import io
import json
import os

import geopandas as gpd
import matplotlib.pyplot as plt
import requests
from matplotlib.colors import LinearSegmentedColormap, to_hex

from d3_page import embed_json, page_shell, write_html
from fines_data import (
    ENFORCEMENT_PATTERNS_CSV,
    JURISDICTION_NAMES,
    MapDataError,
    load_enforcement_patterns,
)

PAGE = 'q5'
TITLE = 'Mobile Phone Fines Heatmap by State'
CSV_FILE = ENFORCEMENT_PATTERNS_CSV
EXPECTED_COLUMNS = ['YEAR', 'JURISDICTION', 'FINES']

GEOJSON_URL = 'https://raw.githubusercontent.com/tonywr71/GeoJson-Data/master/australian-states.json'
GEOJSON_CACHE = os.path.join('data', 'australian-states.json')
NAME_COLUMNS = ['STATE_NAME', 'STE_NAME16']
SIMPLIFY_TOLERANCE = 0.01

MINT = '#BEDEDA'
DRAGONFRUIT = '#E14C70'
HEAT_CMAP = LinearSegmentedColormap.from_list('mint_dragonfruit', [MINT, DRAGONFRUIT])

PLAY_INTERVAL_MS = 1000

# GeoJSON state names -> CSV jurisdiction codes
STATE_CODES = {name: code for code, name in JURISDICTION_NAMES.items()}


def build_lookup(df):
    """Build {year: {jurisdiction: fines}}; later rows win on duplicates."""
    lookup = {}
    for year, code, fines in df[['year', 'jurisdiction', 'fines']].itertuples(index=False):
        lookup.setdefault(int(year), {})[code] = float(fines)
    return lookup


def lookup_value(lookup, code, year):
    if not code:
        return 0
    return lookup.get(year, {}).get(code, 0)


def color_for(value, max_value):
    """Linear mint-to-dragonfruit fill for a fines count."""
    if not max_value or max_value <= 0:
        return to_hex(HEAT_CMAP(0.0))
    fraction = min(max(value / max_value, 0.0), 1.0)
    return to_hex(HEAT_CMAP(fraction))


def year_colors(lookup, max_value, codes=None):
    """Every state's fill for every year, so the page only looks colours up."""
    codes = list(STATE_CODES.values()) if codes is None else list(codes)
    return {
        year: {code: color_for(lookup_value(lookup, code, year), max_value) for code in codes}
        for year in sorted(lookup)
    }


def play_sequence(years, current):
    """Year shown after `current` when playing; wraps to the first year."""
    years = sorted(years)
    later = [y for y in years if y > current]
    return later[0] if later else years[0]


def _download_geojson(url):
    print(f"Downloading state boundaries from {url}...")
    try:
        response = requests.get(url, timeout=30)
        response.raise_for_status()
    except requests.RequestException as err:
        raise MapDataError('Error loading map data.') from err
    return io.BytesIO(response.content)


def _save_cache(states, cache_path):
    """Write the tagged, simplified states; nothing is cached if this fails."""
    try:
        directory = os.path.dirname(cache_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        states.to_file(cache_path, driver='GeoJSON')
    except Exception as err:
        if os.path.isfile(cache_path):
            os.remove(cache_path)
        raise MapDataError(f'Error saving map data to {cache_path}.') from err
    print(f"Saved simplified boundaries to {cache_path}")


def load_state_geometries(source=None, cache_path=None):
    """Load state polygons as a GeoDataFrame keyed by jurisdiction code.

    Args:
        source: local GeoJSON path or URL; defaults to the cached copy of
            GEOJSON_URL, downloading it on first use
        cache_path: where a downloaded basemap is stored (default:
            GEOJSON_CACHE under the working directory)

    Returns:
        GeoDataFrame with STATE_NAME, JURISDICTION, label_x, label_y and
        simplified geometry, one row per matched state
    """
    cache_path = GEOJSON_CACHE if cache_path is None else cache_path
    downloaded = False
    if source and os.path.exists(source):
        path = source
    elif not source and os.path.exists(cache_path):
        path = cache_path
    else:
        path = _download_geojson(source or GEOJSON_URL)
        downloaded = True

    print(f"Loading state boundaries from {'download' if downloaded else path}...")
    try:
        states = gpd.read_file(path)
    except Exception as err:
        raise MapDataError('Error loading map data.') from err

    name_col = next((c for c in NAME_COLUMNS if c in states.columns), None)
    if name_col is None:
        raise MapDataError('Error loading map data: no state name property found.')

    states = states.rename(columns={name_col: 'STATE_NAME'})
    states['JURISDICTION'] = states['STATE_NAME'].map(STATE_CODES)
    unmatched = states.loc[states['JURISDICTION'].isna(), 'STATE_NAME'].tolist()
    if unmatched:
        print(f"Skipping features without a jurisdiction: {', '.join(map(str, unmatched))}")
    states = states[states['JURISDICTION'].notna()].copy()
    if states.empty:
        raise MapDataError('Error loading map data: no Australian states found.')

    states['geometry'] = states.geometry.simplify(SIMPLIFY_TOLERANCE, preserve_topology=True)
    label_points = states.geometry.representative_point()
    states['label_x'] = label_points.x.round(4)
    states['label_y'] = label_points.y.round(4)

    states = states[['STATE_NAME', 'JURISDICTION', 'label_x', 'label_y', 'geometry']].reset_index(drop=True)

    # Later runs read the smaller, already tagged file
    if downloaded:
        _save_cache(states, cache_path)

    print(f"Loaded {len(states)} states")
    return states


def create_d3_html(states, df):
    """Create the standalone D3.js heatmap page with year slider and play controls."""
    print("Creating D3 HTML for state heatmap...")

    lookup = build_lookup(df)
    years = sorted(lookup)
    max_value = float(df['fines'].max()) if len(df) else 0.0
    first_year, last_year = years[0], years[-1]

    geojson = json.loads(states.to_json())

    body = f'''        <div class="card">
            <div style="display:flex;gap:16px;align-items:center;flex-wrap:wrap;">
                <label>Year: <strong id="yearDisplay">{first_year}</strong></label>
                <input type="range" id="yearSlider" min="{first_year}" max="{last_year}" value="{first_year}" step="1" style="flex:1;">
                <button class="btn" id="playBtn">Play</button>
                <button class="btn" id="resetBtn">Reset</button>
            </div>
        </div>
        <div class="card" style="position: relative;">
            <div id="legendContainer" style="position:absolute;top:16px;left:16px;"></div>
            <div id="svganchor" style="display:flex;justify-content:center;"></div>
            <div id="tooltip" class="tooltip"></div>
        </div>'''

    script = f'''
        const geoData = {embed_json(geojson)};
        const fines = {embed_json(lookup)};
        const fills = {embed_json(year_colors(lookup, max_value))};
        const years = {embed_json(years)};
        const playOrder = {embed_json({year: play_sequence(years, year) for year in range(first_year, last_year + 1)})};
        const maxValue = {max_value};
        const emptyFill = '{color_for(0, max_value)}';

        const w = 520;
        const h = 400;
        let currentYear = years[0];
        let isPlaying = false;
        let playInterval;

        const projection = d3.geoMercator()
            .center([132, -28])
            .translate([w / 2, h / 2])
            .scale(600);
        const path = d3.geoPath().projection(projection);
        const tooltip = d3.select('#tooltip');

        const svg = d3.select('#svganchor')
            .append('svg')
            .attr('width', w)
            .attr('height', h);

        function getValue(code, year) {{
            if (!code) return 0;
            const row = fines[year];
            return row && row[code] !== undefined ? row[code] : 0;
        }}

        function getFill(code, year) {{
            const row = fills[year];
            return row && row[code] ? row[code] : emptyFill;
        }}

        svg.selectAll('.state-path')
            .data(geoData.features)
            .join('path')
            .attr('class', 'state-path')
            .attr('d', path)
            .attr('fill', d => getFill(d.properties.JURISDICTION, currentYear))
            .attr('stroke', '#ffffff')
            .attr('stroke-width', 1)
            .on('mouseover', (event, d) => {{
                const value = getValue(d.properties.JURISDICTION, currentYear);
                tooltip.classed('visible', true)
                    .html(`<strong>${{d.properties.STATE_NAME}}</strong><br>Year: ${{currentYear}}<br>Fines: ${{value.toLocaleString()}}`);
            }})
            .on('mousemove', event => {{
                tooltip.style('left', (event.offsetX + 10) + 'px')
                    .style('top', (event.offsetY - 28) + 'px');
            }})
            .on('mouseout', () => tooltip.classed('visible', false));

        svg.selectAll('.state-label')
            .data(geoData.features)
            .join('text')
            .attr('class', 'state-label')
            .attr('transform', d => `translate(${{projection([d.properties.label_x, d.properties.label_y])}})`)
            .attr('text-anchor', 'middle')
            .style('font-size', '11px')
            .style('font-weight', '600')
            .style('fill', '#1f2a44')
            .style('pointer-events', 'none')
            .text(d => d.properties.JURISDICTION);

        const legendSvg = d3.select('#legendContainer')
            .append('svg')
            .attr('width', 90)
            .attr('height', 110);
        const gradient = legendSvg.append('defs')
            .append('linearGradient')
            .attr('id', 'heat-gradient')
            .attr('x1', '0%').attr('x2', '0%')
            .attr('y1', '100%').attr('y2', '0%');
        gradient.selectAll('stop')
            .data(['{MINT}', '{DRAGONFRUIT}'])
            .join('stop')
            .attr('offset', (d, i) => i * 100 + '%')
            .attr('stop-color', d => d);
        const legend = legendSvg.append('g').attr('transform', 'translate(10,10)');
        legend.append('rect')
            .attr('width', 14)
            .attr('height', 80)
            .style('fill', 'url(#heat-gradient)');
        const legendScale = d3.scaleLinear().domain([maxValue, 0]).range([0, 80]);
        legend.append('g')
            .attr('transform', 'translate(14,0)')
            .call(d3.axisRight(legendScale).ticks(4).tickFormat(d3.format('.2s')));

        function updateMap(year) {{
            currentYear = year;
            document.getElementById('yearDisplay').textContent = year;
            document.getElementById('yearSlider').value = year;
            svg.selectAll('.state-path')
                .transition()
                .duration(300)
                .attr('fill', d => getFill(d.properties.JURISDICTION, year));
        }}

        function startPlay() {{
            isPlaying = true;
            document.getElementById('playBtn').textContent = 'Pause';
            playInterval = setInterval(() => updateMap(playOrder[currentYear]), {PLAY_INTERVAL_MS});
        }}

        function stopPlay() {{
            isPlaying = false;
            document.getElementById('playBtn').textContent = 'Play';
            clearInterval(playInterval);
        }}

        document.getElementById('yearSlider').addEventListener('input', function() {{
            if (isPlaying) stopPlay();
            updateMap(+this.value);
        }});
        document.getElementById('playBtn').addEventListener('click', () => {{
            isPlaying ? stopPlay() : startPlay();
        }});
        document.getElementById('resetBtn').addEventListener('click', () => {{
            stopPlay();
            updateMap(years[0]);
        }});
'''

    subtitle = f'Fines issued per state and territory, {first_year}-{last_year}'
    return page_shell(TITLE, subtitle, body, script, active_page=PAGE)


def plot_heatmap_png(states, df, output_path, year=None):
    """Save a static choropleth PNG for one year (default: latest)."""
    lookup = build_lookup(df)
    year = max(lookup) if year is None else year
    max_value = float(df['fines'].max()) if len(df) else 0.0

    merged = states.copy()
    merged['fines'] = [lookup_value(lookup, code, year) for code in merged['JURISDICTION']]

    fig, ax = plt.subplots(1, 1, figsize=(12, 10))
    merged.plot(
        column='fines',
        ax=ax,
        legend=True,
        cmap=HEAT_CMAP,
        vmin=0,
        vmax=max_value or 1,
        edgecolor='white',
        linewidth=0.8,
        legend_kwds={
            'label': 'Mobile phone fines',
            'orientation': 'horizontal',
            'shrink': 0.6,
            'pad': 0.04,
        }
    )
    for row in merged.itertuples(index=False):
        ax.annotate(row.JURISDICTION, xy=(row.label_x, row.label_y),
                    ha='center', fontsize=10, fontweight='bold', color='#1f2a44')

    ax.set_title(f'{TITLE} ({year})', fontsize=18, fontweight='bold', pad=16)
    ax.axis('off')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"Map saved as {output_path}")
    return output_path


def build(data_dir=None, output_dir='site', png=True, geojson=None):
    df = load_enforcement_patterns(data_dir)
    states = load_state_geometries(geojson)

    html_path = write_html(create_d3_html(states, df), os.path.join(output_dir, f'{PAGE}.html'))
    if png:
        os.makedirs(os.path.join(output_dir, 'png'), exist_ok=True)
        plot_heatmap_png(states, df, os.path.join(output_dir, 'png', f'{PAGE}.png'))
    return html_path


def main():
    print("=" * 60)
    print("Creating D3.js State Heatmap with Year Slider")
    print("=" * 60)

    build()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == '__main__':
    main()
