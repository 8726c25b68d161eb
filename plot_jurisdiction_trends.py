#!/usr/bin/env python3
"""
Create the multi-series line chart of annual fines by jurisdiction (Q2).

The CSV is wide (one column per jurisdiction); it is reshaped to long format
and embedded in a D3.js page with checkbox and legend toggles.
"""

import os
from datetime import date, timedelta

import matplotlib.pyplot as plt

from d3_page import embed_json, page_shell, write_html
from fines_data import (
    JURISDICTION_FINES_CSV,
    JURISDICTIONS,
    DataLoadError,
    load_jurisdiction_fines,
    padded_extent,
)

PAGE = 'q2'
TITLE = 'Annual Mobile Phone Fines by Jurisdiction'
CSV_FILE = JURISDICTION_FINES_CSV
EXPECTED_COLUMNS = ['YEAR'] + JURISDICTIONS

# 8 discriminable colours, assigned to jurisdictions in sorted order
COLOR_PALETTE = [
    '#FFC900',
    '#54ADD4',
    '#FFAEB4',
    '#E14C70',
    '#C49EE8',
    '#81BC00',
    '#BEDEDA',
    '#E9EF63',
]

Y_PADDING = 0.18
Y_LOWER_CAP = -20000
X_PADDING_DAYS = 180
HOVER_STEPS = 12


def jurisdictions(long_df):
    codes = sorted(long_df['jurisdiction'].dropna().unique())
    if not codes:
        raise DataLoadError('No jurisdictions found in dataset')
    return codes


def color_map(codes):
    return {code: COLOR_PALETTE[i % len(COLOR_PALETTE)] for i, code in enumerate(codes)}


def y_domain(values):
    """Padded value extent; the lower bound never drops below Y_LOWER_CAP."""
    low, high = padded_extent(values, Y_PADDING, fallback=0)
    return max(low, Y_LOWER_CAP), high


def x_domain(years):
    """First and last 1 January, pushed apart by X_PADDING_DAYS each side."""
    years = [int(y) for y in years]
    pad = timedelta(days=X_PADDING_DAYS)
    start = date(min(years), 1, 1) - pad
    end = date(max(years), 1, 1) + pad
    return start.isoformat(), end.isoformat()


def series_by_jurisdiction(long_df):
    """Group the long table into {jurisdiction: [{year, value}, ...]}."""
    grouped = {}
    for code, rows in long_df.groupby('jurisdiction', sort=True):
        rows = rows.sort_values('year')
        grouped[code] = [
            {'year': int(year), 'value': None if value != value else float(value)}
            for year, value in zip(rows['year'], rows['value'])
        ]
    return grouped


def nearest_point(points, year):
    """Point closest to the given (possibly fractional) year; earlier wins ties."""
    if not points:
        return None
    best = points[0]
    for point in points[1:]:
        if abs(point['year'] - year) < abs(best['year'] - year):
            best = point
    return best


def hover_index(points, first_year, last_year, steps_per_year=HOVER_STEPS):
    """Index of the nearest point for each hover step from first_year to last_year.

    The page turns the pointer position into a step and looks the point up,
    so tooltips snap exactly as nearest_point does.
    """
    if not points:
        return []
    index = []
    for step in range((last_year - first_year) * steps_per_year + 1):
        point = nearest_point(points, first_year + step / steps_per_year)
        index.append(next(i for i, p in enumerate(points) if p is point))
    return index


def create_d3_html(long_df):
    """Create the standalone D3.js multi-series line chart page."""
    print("Creating D3 HTML for fines by jurisdiction...")

    codes = jurisdictions(long_df)
    colors = color_map(codes)
    series = series_by_jurisdiction(long_df)
    first_year, last_year = int(long_df['year'].min()), int(long_df['year'].max())
    hover = {code: hover_index(points, first_year, last_year) for code, points in series.items()}

    body = '''        <div class="card">
            <div class="controls-header" id="q2-controls-header">
                <span class="toggle-arrow" id="toggle-filters">&#9656;</span>
                <span>Filter jurisdictions</span>
            </div>
            <div class="filters-content" id="filters-content">
                <div class="jurisdiction-grid" id="jurisdiction-grid"></div>
            </div>
        </div>
        <div class="card">
            <div id="chart"><div class="loading">Loading data...</div></div>
            <div class="legend" id="legend"></div>
        </div>'''

    script = f'''
        const series = {embed_json(series)};
        const hover = {embed_json(hover)};
        const hoverStart = {first_year};
        const jurisdictions = {embed_json(codes)};
        const colors = {embed_json(colors)};
        const xDomain = {embed_json(list(x_domain([first_year, last_year])))}.map(d => new Date(d));
        const yDomain = {embed_json(list(y_domain(long_df['value'].tolist())))};

        const activeJurisdictions = new Set(jurisdictions);
        const asDate = year => new Date(year, 0, 1);
        const tooltip = d3.select('body').append('div').attr('class', 'tooltip');

        function lineOpacity(j) {{
            return activeJurisdictions.has(j) ? 0.9 : 0.08;
        }}

        function createChart() {{
            const chartDiv = document.getElementById('chart');
            chartDiv.innerHTML = '';

            const margin = {{top: 40, right: 160, bottom: 50, left: 70}};
            const containerWidth = chartDiv.clientWidth || 900;
            const width = containerWidth - margin.left - margin.right;
            const height = 760 - margin.top - margin.bottom;

            const svg = d3.select('#chart')
                .append('svg')
                .attr('width', '100%')
                .attr('height', height + margin.top + margin.bottom)
                .attr('viewBox', `0 0 ${{containerWidth}} ${{height + margin.top + margin.bottom}}`)
                .append('g')
                .attr('transform', `translate(${{margin.left}},${{margin.top}})`);

            const x = d3.scaleTime().domain(xDomain).range([0, width]);
            const y = d3.scaleLinear().domain(yDomain).range([height, 0]).nice();

            svg.append('g')
                .attr('class', 'grid')
                .call(d3.axisLeft(y).tickSize(-width).tickFormat(''));
            svg.append('g')
                .attr('class', 'axis')
                .attr('transform', `translate(0,${{height}})`)
                .call(d3.axisBottom(x).ticks(8));
            svg.append('g')
                .attr('class', 'axis')
                .call(d3.axisLeft(y));

            const line = d3.line()
                .defined(d => d.value != null)
                .x(d => x(asDate(d.year)))
                .y(d => y(d.value))
                .curve(d3.curveMonotoneX);

            const entries = jurisdictions.map(j => [j, series[j]]);
            svg.selectAll('.line')
                .data(entries)
                .join('path')
                .attr('class', 'line')
                .attr('data-jurisdiction', d => d[0])
                .attr('d', d => line(d[1]))
                .style('fill', 'none')
                .style('stroke', d => colors[d[0]])
                .style('stroke-width', 2.5)
                .style('stroke-linejoin', 'round')
                .style('stroke-linecap', 'round')
                .style('opacity', d => lineOpacity(d[0]))
                .on('mouseenter', (event, d) => {{
                    svg.selectAll('.line')
                        .transition().duration(200)
                        .style('opacity', other => other[0] === d[0] ? 1 : 0.15);
                }})
                .on('mouseleave', () => {{
                    svg.selectAll('.line')
                        .transition().duration(200)
                        .style('opacity', other => lineOpacity(other[0]));
                    tooltip.classed('visible', false);
                }})
                .on('mousemove', (event, d) => {{
                    const [mouseX] = d3.pointer(event);
                    const hovered = x.invert(mouseX);
                    const steps = hover[d[0]];
                    const step = Math.round((hovered.getFullYear() - hoverStart) * {HOVER_STEPS} + hovered.getMonth());
                    const point = d[1][steps[Math.max(0, Math.min(steps.length - 1, step))]];
                    tooltip.html(`
                        <div class="tooltip-date">${{point.year}}</div>
                        <div><span class="tooltip-color" style="background: ${{colors[d[0]]}}"></span>${{d[0]}}: ${{point.value != null ? point.value.toLocaleString() : 'N/A'}}</div>
                    `)
                    .style('left', (event.pageX + 15) + 'px')
                    .style('top', (event.pageY - 40) + 'px')
                    .classed('visible', true);
                }});

            entries.forEach(([j, points]) => {{
                const last = points.filter(p => p.value != null).pop();
                if (!last) return;
                svg.append('text')
                    .attr('x', x(asDate(last.year)) + 8)
                    .attr('y', y(last.value))
                    .attr('dy', '0.35em')
                    .style('font-size', '12px')
                    .style('fill', colors[j])
                    .style('opacity', activeJurisdictions.has(j) ? 1 : 0.2)
                    .text(j);
            }});
        }}

        function updateVisibility() {{
            d3.selectAll('.line')
                .transition()
                .duration(300)
                .style('opacity', d => lineOpacity(d[0]));
            d3.selectAll('#legend .legend-item').classed('inactive', d => !activeJurisdictions.has(d));
        }}

        function toggleJurisdiction(j) {{
            if (activeJurisdictions.has(j)) activeJurisdictions.delete(j);
            else activeJurisdictions.add(j);
            const cb = document.getElementById(`check-${{j}}`);
            if (cb) cb.checked = activeJurisdictions.has(j);
            updateVisibility();
        }}

        function createControls() {{
            const grid = d3.select('#jurisdiction-grid');
            grid.selectAll('*').remove();
            jurisdictions.forEach(j => {{
                const label = grid.append('label').attr('class', 'jurisdiction-checkbox');
                label.append('input')
                    .attr('type', 'checkbox')
                    .attr('id', `check-${{j}}`)
                    .attr('data-jurisdiction', j)
                    .property('checked', true)
                    .on('change', () => toggleJurisdiction(j));
                label.append('span').style('color', colors[j]).text(j);
            }});

            const legend = d3.select('#legend');
            legend.selectAll('*').remove();
            const items = legend.selectAll('.legend-item')
                .data(jurisdictions)
                .join('div')
                .attr('class', 'legend-item')
                .on('click', (event, j) => toggleJurisdiction(j));
            items.append('div')
                .attr('class', 'legend-color')
                .style('background', d => colors[d]);
            items.append('span').text(d => d);
        }}

        const controlsHeader = document.getElementById('q2-controls-header');
        const filtersContent = document.getElementById('filters-content');
        const toggleArrow = document.getElementById('toggle-filters');
        controlsHeader.addEventListener('click', () => {{
            const isOpen = filtersContent.style.display === 'block';
            filtersContent.style.display = isOpen ? 'none' : 'block';
            toggleArrow.classList.toggle('open', !isOpen);
        }});

        createControls();
        createChart();

        let resizeTimer;
        window.addEventListener('resize', () => {{
            clearTimeout(resizeTimer);
            resizeTimer = setTimeout(createChart, 250);
        }});
'''

    subtitle = f'All jurisdictions, {first_year}-{last_year}'
    return page_shell(TITLE, subtitle, body, script, active_page=PAGE)


def plot_jurisdiction_trends_png(long_df, output_path):
    """Save a static PNG of the multi-series chart."""
    codes = jurisdictions(long_df)
    colors = color_map(codes)
    series = series_by_jurisdiction(long_df)

    fig, ax = plt.subplots(1, 1, figsize=(14, 8))
    for code in codes:
        points = [p for p in series[code] if p['value'] is not None]
        ax.plot([p['year'] for p in points], [p['value'] for p in points],
                color=colors[code], linewidth=2.5, label=code)

    low, high = y_domain(long_df['value'].tolist())
    ax.set_ylim(low, high)
    ax.set_xlabel('Year')
    ax.set_ylabel('Number of Fines')
    ax.set_title(TITLE, fontsize=16, fontweight='bold', pad=16)
    ax.grid(axis='y', color='#e5e7eb')
    ax.legend(loc='center left', bbox_to_anchor=(1.0, 0.5), frameon=False)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"Chart saved as {output_path}")
    return output_path


def build(data_dir=None, output_dir='site', png=True):
    long_df = load_jurisdiction_fines(data_dir)

    html_path = write_html(create_d3_html(long_df), os.path.join(output_dir, f'{PAGE}.html'))
    if png:
        os.makedirs(os.path.join(output_dir, 'png'), exist_ok=True)
        plot_jurisdiction_trends_png(long_df, os.path.join(output_dir, 'png', f'{PAGE}.png'))
    return html_path


def main():
    print("=" * 60)
    print("Creating Fines by Jurisdiction Chart")
    print("=" * 60)

    build()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == '__main__':
    main()
