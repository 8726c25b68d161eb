#!/usr/bin/env python3
"""
Create the police vs camera two-line chart of annual mobile phone fines (Q1).

Generates a standalone D3.js page with a year slider, series toggles and peak
markers, plus a static matplotlib PNG of the same chart.
"""

import html
import os

import matplotlib.pyplot as plt

from d3_page import embed_json, page_shell, write_html
from fines_data import ANNUAL_FINES_CSV, load_annual_fines, padded_extent

PAGE = 'q1'
TITLE = 'Mobile Phone Fines: Police vs Camera Detection'
CSV_FILE = ANNUAL_FINES_CSV
EXPECTED_COLUMNS = ['Year', 'Police issued fines', 'Camera issued fines']

METHODS = ['Police', 'Camera']
COLORS = {
    'Police': '#81BC00',
    'Camera': '#C49EE8',
}

CAMERA_LAUNCH_YEAR = 2020
POLICE_DECLINE_END_YEAR = 2024

PEAK_EXPLANATIONS = {
    'Police': 'Increased on-road enforcement and stricter penalties for mobile phone '
              'violations led to peak police-issued fines during this period.',
    'Camera': 'Expansion of mobile phone detection camera network across major highways '
              'resulted in highest recorded camera-detected violations.',
}

DATA_STORY = {
    'intro': 'This chart shows how mobile phone fines have been detected in recent years, '
             'either by police officers on the road or by automated cameras. It reveals how '
             'new technology and changing enforcement priorities have shaped driver behaviour '
             'and the number of fines issued.',
    'timeline': [
        (2020, '2020: Cameras Introduced',
         'Mobile phone detection cameras were introduced, allowing automated enforcement '
         'for the first time. Many drivers were caught unaware.'),
        (2021, '2021: Camera Rollout Expands',
         'The camera network expanded to more locations, increasing the reach of automated '
         'enforcement.'),
        (2022, '2022: Peak Camera Fines',
         'Cameras now covered most major roads. This year saw the highest number of camera '
         'detected fines as public awareness caught up.'),
        (2023, '2023-24: Fines Stabilise',
         'Drivers became more aware of cameras, and the number of fines stabilised as '
         'behaviour adjusted.'),
    ],
    'police_decline': 'As cameras took over much of the enforcement work, police resources '
                      'shifted to other priorities. Fewer officers were needed for mobile phone '
                      'patrols, so police issued fines dropped sharply after 2020.',
    'conclusion': 'The introduction of automated cameras in 2020 changed the landscape of mobile '
                  'phone enforcement, leading to a sharp rise in camera fines, a drop in police '
                  'issued fines, and a new era of road safety monitoring.',
}


def build_series(df):
    """Split the wide table into one list of points per detection method.

    Missing values are skipped so each line only joins real observations.
    """
    series = {}
    for method in METHODS:
        column = method.lower()
        points = df.loc[df[column].notna(), ['year', column]]
        series[method] = [
            {'year': int(year), 'value': float(value)}
            for year, value in points.itertuples(index=False)
        ]
    return series


def y_domain(series):
    values = [p['value'] for points in series.values() for p in points]
    return padded_extent(values, 0.1, fallback=1)


def find_peaks(series):
    """Highest point of each series, first occurrence on ties."""
    peaks = []
    for method in METHODS:
        points = series.get(method) or []
        if not points:
            continue
        peak = None
        for point in points:
            if peak is None or point['value'] > peak['value']:
                peak = point
        peaks.append({
            'method': method,
            'year': peak['year'],
            'value': peak['value'],
            'color': COLORS[method],
            'explanation': PEAK_EXPLANATIONS[method],
        })
    return peaks


def filter_through_year(series, year):
    """Keep the points up to and including the selected year."""
    return {
        method: [p for p in points if p['year'] <= year]
        for method, points in series.items()
    }


def end_labels(series):
    """Direct label at the last point of each non-empty series."""
    labels = []
    for method in METHODS:
        points = series.get(method) or []
        if points:
            last = points[-1]
            labels.append({
                'method': method,
                'year': last['year'],
                'value': last['value'],
                'color': COLORS[method],
            })
    return labels


def year_views(series, years):
    """Series and end labels for every position of the year slider."""
    views = {}
    for year in years:
        shown = filter_through_year(series, year)
        views[year] = {'series': shown, 'labels': end_labels(shown)}
    return views


def year_extent(df):
    return int(df['year'].min()), int(df['year'].max())


def annotations(df):
    """Story annotations that fall within the plotted years."""
    first, last = year_extent(df)
    notes = []
    if first <= CAMERA_LAUNCH_YEAR <= last:
        notes.append({
            'kind': 'marker',
            'year': CAMERA_LAUNCH_YEAR,
            'lines': ['Cameras launched here'],
            'color': COLORS['Camera'],
        })
    if first <= CAMERA_LAUNCH_YEAR and POLICE_DECLINE_END_YEAR <= last:
        notes.append({
            'kind': 'span',
            'start': CAMERA_LAUNCH_YEAR,
            'end': POLICE_DECLINE_END_YEAR,
            'lines': ['Police detections drop as', 'cameras take over'],
            'color': COLORS['Police'],
        })
    return notes


def render_data_story():
    timeline = {year: text for year, _, text in DATA_STORY['timeline']}
    return f'''<div style="margin-bottom:12px;">{html.escape(DATA_STORY['intro'])}</div>
            <ul style="margin:0 0 12px 0;padding-left:20px;">
                <li><b>2020:</b> {html.escape(timeline[2020])}</li>
                <li><b>2022:</b> {html.escape(timeline[2022])}</li>
                <li><b>Police detections drop:</b> {html.escape(DATA_STORY['police_decline'])}</li>
            </ul>
            <div style="margin-top:10px;color:#4b3a7a;font-weight:bold;">{html.escape(DATA_STORY['conclusion'])}</div>'''


def render_peak_cards(peaks):
    cards = []
    for peak in peaks:
        cards.append(f'''<div class="insight-item" style="border-left: 4px solid {peak['color']}; padding-left: 16px; margin-bottom: 16px;">
                <div style="font-size: 16px; font-weight: 700; color: {peak['color']}; margin-bottom: 8px;">{peak['method']} Enforcement Peak</div>
                <div style="font-size: 14px; color: #666; margin-bottom: 8px;">{html.escape(peak['explanation'])}</div>
                <div style="font-size: 13px; color: #999;"><strong>Year:</strong> {peak['year']} &bull; <strong>Fines:</strong> {peak['value']:,.0f}</div>
            </div>''')
    return '\n            '.join(cards)


def create_d3_html(df):
    """Create the standalone D3.js two-line chart page."""
    print("Creating D3 HTML for police vs camera fines...")

    series = build_series(df)
    peaks = find_peaks(series)
    min_year, max_year = year_extent(df)

    body = f'''        <div class="card">
            <div class="controls-header" id="q1-controls-header">
                <span class="toggle-arrow" id="toggle-filters">&#9656;</span>
                <span>Filters</span>
            </div>
            <div class="filters-content" id="filters-content">
                <div class="jurisdiction-grid" id="method-grid"></div>
                <label style="display:block;margin-top:12px;">
                    Show years up to <strong id="dropdown-year-value">{max_year}</strong>
                    <input type="range" id="dropdown-year-slider" min="{min_year}" max="{max_year}" value="{max_year}" step="1">
                </label>
            </div>
        </div>
        <div class="card">
            <div id="chart"><div class="loading">Loading data...</div></div>
            <div class="legend" id="legend"></div>
        </div>
        <div class="card" id="peak-info-container">
            {render_peak_cards(peaks)}
        </div>
        <div class="card" id="data-story-section">
            <h3 style="margin-bottom:10px;">The data story</h3>
            <div id="data-story-content">
            {render_data_story()}
            </div>
        </div>'''

    script = f'''
        const views = {embed_json(year_views(series, range(min_year, max_year + 1)))};
        const peaks = {embed_json(peaks)};
        const notes = {embed_json(annotations(df))};
        const yDomain = {embed_json(list(y_domain(series)))};
        const yearExtent = [{min_year}, {max_year}];
        const methods = {embed_json(METHODS)};
        const colorMap = {embed_json(COLORS)};

        const activeMethods = new Set(methods);
        let selectedYear = yearExtent[1];
        const asDate = year => new Date(year, 0, 1);

        const tooltip = d3.select('body').append('div').attr('class', 'tooltip');

        function createChart() {{
            const chartDiv = document.getElementById('chart');
            chartDiv.innerHTML = '';

            const margin = {{top: 40, right: 80, bottom: 70, left: 120}};
            const containerWidth = chartDiv.clientWidth || 900;
            const width = containerWidth - margin.left - margin.right;
            const height = 450 - margin.top - margin.bottom;

            const svg = d3.select('#chart')
                .append('svg')
                .attr('width', '100%')
                .attr('height', height + margin.top + margin.bottom)
                .attr('viewBox', `0 0 ${{containerWidth}} ${{height + margin.top + margin.bottom}}`)
                .append('g')
                .attr('transform', `translate(${{margin.left}},${{margin.top}})`);

            const x = d3.scaleTime()
                .domain(yearExtent.map(asDate))
                .range([0, width]);
            const y = d3.scaleLinear()
                .domain(yDomain)
                .range([height, 0])
                .nice();

            svg.append('g')
                .attr('class', 'grid')
                .call(d3.axisLeft(y).tickSize(-width).tickFormat(''));
            svg.append('g')
                .attr('class', 'axis')
                .attr('transform', `translate(0,${{height}})`)
                .call(d3.axisBottom(x).ticks(6));
            svg.append('g')
                .attr('class', 'axis')
                .call(d3.axisLeft(y));
            svg.append('text')
                .attr('class', 'axis-label')
                .attr('x', width / 2)
                .attr('y', height + 45)
                .style('text-anchor', 'middle')
                .text('Year');
            svg.append('text')
                .attr('class', 'axis-label')
                .attr('transform', 'rotate(-90)')
                .attr('x', -height / 2)
                .attr('y', -85)
                .style('text-anchor', 'middle')
                .text('Number of Fines');

            const line = d3.line()
                .x(d => x(asDate(d.year)))
                .y(d => y(d.value))
                .curve(d3.curveMonotoneX);
            const area = d3.area()
                .x(d => x(asDate(d.year)))
                .y0(height)
                .y1(d => y(d.value))
                .curve(d3.curveMonotoneX);

            methods.forEach(method => {{
                const points = views[selectedYear].series[method];
                const visible = activeMethods.has(method);

                svg.append('path')
                    .datum(points)
                    .attr('class', 'area')
                    .attr('d', area)
                    .style('fill', colorMap[method])
                    .style('opacity', visible ? 0.12 : 0);

                svg.append('path')
                    .datum(points)
                    .attr('class', 'line')
                    .attr('data-method', method)
                    .attr('d', line)
                    .style('fill', 'none')
                    .style('stroke', colorMap[method])
                    .style('stroke-width', 3)
                    .style('opacity', visible ? 1 : 0);

                svg.selectAll(`.point-${{method}}`)
                    .data(points)
                    .join('circle')
                    .attr('class', `point point-${{method}}`)
                    .attr('cx', d => x(asDate(d.year)))
                    .attr('cy', d => y(d.value))
                    .attr('r', 4)
                    .style('fill', colorMap[method])
                    .style('opacity', visible ? 1 : 0)
                    .style('pointer-events', visible ? 'all' : 'none')
                    .on('mouseenter', (event, d) => {{
                        tooltip.html(`
                            <div class="tooltip-date">${{d.year}}</div>
                            <div><span class="tooltip-color" style="background: ${{colorMap[method]}}"></span>${{method}}: ${{d.value.toLocaleString()}}</div>
                        `)
                        .style('left', (event.pageX + 15) + 'px')
                        .style('top', (event.pageY - 40) + 'px')
                        .classed('visible', true);
                    }})
                    .on('mouseleave', () => tooltip.classed('visible', false));
            }});

            svg.selectAll('.direct-label')
                .data(views[selectedYear].labels.filter(d => activeMethods.has(d.method)))
                .join('text')
                .attr('class', d => `direct-label direct-label-${{d.method}}`)
                .attr('x', width + 10)
                .attr('y', d => y(d.value))
                .attr('dy', '0.35em')
                .style('fill', d => d.color)
                .style('font-weight', '600')
                .style('font-size', '14px')
                .text(d => d.method);

            peaks.forEach(peak => {{
                if (!activeMethods.has(peak.method) || peak.year > selectedYear) return;
                const cx = x(asDate(peak.year));
                const cy = y(peak.value);
                svg.append('circle')
                    .attr('class', 'peak')
                    .attr('cx', cx)
                    .attr('cy', cy)
                    .attr('r', 7)
                    .style('fill', peak.color)
                    .style('stroke', '#ffffff')
                    .style('stroke-width', 2.5);

                let labelX = cx, labelY = cy - 20, anchor = 'middle';
                if (peak.method !== 'Camera') {{
                    const offset = (cx > width - 120) ? -128 : 8;
                    anchor = offset < 0 ? 'end' : 'start';
                    labelX = cx + offset;
                    labelY = cy - 8;
                }}
                svg.append('text')
                    .attr('x', labelX)
                    .attr('y', labelY)
                    .attr('text-anchor', anchor)
                    .text(`Peak: ${{peak.value.toLocaleString()}}`)
                    .style('fill', peak.color)
                    .style('font-weight', '600')
                    .style('font-size', '13px');
            }});

            notes.forEach(note => {{
                const top = y.range()[1];
                if (note.kind === 'marker') {{
                    const nx = x(asDate(note.year));
                    svg.append('line')
                        .attr('x1', nx).attr('x2', nx)
                        .attr('y1', height).attr('y2', top)
                        .attr('stroke', note.color)
                        .attr('stroke-width', 2)
                        .attr('stroke-dasharray', '3,2');
                    svg.append('text')
                        .attr('x', nx)
                        .attr('y', top - 8)
                        .attr('text-anchor', 'middle')
                        .attr('font-size', '13px')
                        .attr('font-weight', '600')
                        .attr('fill', note.color)
                        .text(note.lines[0]);
                }} else {{
                    const x1 = x(asDate(note.start));
                    const x2 = x(asDate(note.end));
                    const yLeader = top + 40;
                    svg.append('line')
                        .attr('x1', x1).attr('x2', x2)
                        .attr('y1', yLeader).attr('y2', yLeader)
                        .attr('stroke', note.color)
                        .attr('stroke-width', 2)
                        .attr('stroke-dasharray', '3,2');
                    svg.append('text')
                        .attr('x', (x1 + x2) / 2)
                        .attr('y', yLeader - 26)
                        .attr('text-anchor', 'middle')
                        .attr('font-size', '13px')
                        .attr('font-weight', '600')
                        .attr('fill', note.color)
                        .selectAll('tspan')
                        .data(note.lines)
                        .join('tspan')
                        .attr('x', (x1 + x2) / 2)
                        .attr('dy', (d, i) => i === 0 ? 0 : 16)
                        .text(d => d);
                }}
            }});
        }}

        function createLegend() {{
            const legend = d3.select('#legend');
            legend.selectAll('*').remove();
            const items = legend.selectAll('.legend-item')
                .data(methods)
                .join('div')
                .attr('class', 'legend-item')
                .classed('inactive', m => !activeMethods.has(m))
                .on('click', (event, m) => toggleMethod(m));
            items.append('div')
                .attr('class', 'legend-color')
                .style('background', m => colorMap[m]);
            items.append('span').text(m => `${{m}} issued fines`);

            const grid = d3.select('#method-grid');
            grid.selectAll('*').remove();
            methods.forEach(m => {{
                const label = grid.append('label').attr('class', 'jurisdiction-checkbox');
                label.append('input')
                    .attr('type', 'checkbox')
                    .attr('id', `check-${{m}}`)
                    .property('checked', activeMethods.has(m))
                    .on('change', () => toggleMethod(m));
                label.append('span').style('color', colorMap[m]).text(m);
            }});
        }}

        function toggleMethod(m) {{
            if (activeMethods.has(m)) activeMethods.delete(m); else activeMethods.add(m);
            const cb = document.getElementById(`check-${{m}}`);
            if (cb) cb.checked = activeMethods.has(m);
            d3.selectAll('#legend .legend-item').classed('inactive', d => !activeMethods.has(d));
            createChart();
        }}

        const slider = document.getElementById('dropdown-year-slider');
        slider.addEventListener('input', function() {{
            selectedYear = +this.value;
            document.getElementById('dropdown-year-value').textContent = selectedYear;
            createChart();
        }});

        const controlsHeader = document.getElementById('q1-controls-header');
        const filtersContent = document.getElementById('filters-content');
        const toggleArrow = document.getElementById('toggle-filters');
        controlsHeader.addEventListener('click', () => {{
            const isOpen = filtersContent.style.display === 'block';
            filtersContent.style.display = isOpen ? 'none' : 'block';
            toggleArrow.classList.toggle('open', !isOpen);
        }});

        createLegend();
        createChart();

        let resizeTimer;
        window.addEventListener('resize', () => {{
            clearTimeout(resizeTimer);
            resizeTimer = setTimeout(createChart, 250);
        }});
'''

    subtitle = f'Annual fines issued by police officers and detection cameras, {min_year}-{max_year}'
    return page_shell(TITLE, subtitle, body, script, active_page=PAGE)


def plot_annual_fines_png(df, output_path, through_year=None):
    """Save a static PNG of the two-line chart, optionally cut off after a year."""
    full_series = build_series(df)
    through_year = year_extent(df)[1] if through_year is None else through_year
    series = filter_through_year(full_series, through_year)
    peaks = [p for p in find_peaks(full_series) if p['year'] <= through_year]

    fig, ax = plt.subplots(1, 1, figsize=(12, 6))

    for method in METHODS:
        points = series[method]
        if not points:
            continue
        years = [p['year'] for p in points]
        values = [p['value'] for p in points]
        ax.plot(years, values, color=COLORS[method], linewidth=3, marker='o',
                label=f'{method} issued fines')
        ax.fill_between(years, values, alpha=0.12, color=COLORS[method])

    for peak in peaks:
        ax.annotate(f"Peak: {peak['value']:,.0f}",
                    xy=(peak['year'], peak['value']),
                    xytext=(0, 12), textcoords='offset points',
                    ha='center', color=peak['color'], fontweight='bold')

    for label in end_labels(series):
        ax.annotate(label['method'], xy=(label['year'], label['value']),
                    xytext=(10, 0), textcoords='offset points', va='center',
                    color=label['color'], fontweight='bold')

    low, high = y_domain(full_series)
    ax.set_ylim(low, high)
    ax.set_xlabel('Year')
    ax.set_ylabel('Number of Fines')
    ax.set_title(TITLE, fontsize=16, fontweight='bold', pad=16)
    ax.grid(axis='y', color='#e5e7eb')
    ax.legend(frameon=False)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"Chart saved as {output_path}")
    return output_path


def build(data_dir=None, output_dir='site', png=True):
    """Load the data and write the page (and PNG) for this chart."""
    df = load_annual_fines(data_dir)

    html_path = write_html(create_d3_html(df), os.path.join(output_dir, f'{PAGE}.html'))
    if png:
        os.makedirs(os.path.join(output_dir, 'png'), exist_ok=True)
        plot_annual_fines_png(df, os.path.join(output_dir, 'png', f'{PAGE}.png'))
    return html_path


def main():
    print("=" * 60)
    print("Creating Police vs Camera Fines Chart")
    print("=" * 60)

    build()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == '__main__':
    main()
