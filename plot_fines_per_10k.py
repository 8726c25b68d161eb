#!/usr/bin/env python3
"""
Create the horizontal bar chart of fines per 10,000 driver licences (Q3).

Bars are sorted descending by the mean rate over the selected years. The
page lets readers narrow the jurisdictions and year range, and click a bar
to focus on a single jurisdiction.
"""

import os

import matplotlib.pyplot as plt

from d3_page import embed_json, page_shell, write_html
from fines_data import FINES_PER_10K_CSV, load_fines_per_10k

PAGE = 'q3'
TITLE = 'Fines per 10,000 Driver Licenses by Jurisdiction'
CSV_FILE = FINES_PER_10K_CSV
EXPECTED_COLUMNS = ['YEAR', 'JURISDICTION', 'Sum(FINES)', 'Licenses', 'Fines per 10K']

COLOR_SCALE = {
    'NSW': '#1e3a8a',
    'VIC': '#f59e0b',
    'QLD': '#10b981',
    'WA': '#ef4444',
    'SA': '#8b5cf6',
    'TAS': '#06b6d4',
    'ACT': '#ec4899',
    'NT': '#6b7280',
}

X_HEADROOM = 1.15
EMPTY_X_MAX = 100

YEAR_RANGE_ERROR = 'Start year must be less than or equal to end year'


def validate_year_range(start, end):
    if start > end:
        raise ValueError(YEAR_RANGE_ERROR)


def filter_rates(df, active, start, end):
    """Rows for the active jurisdictions within the inclusive year range."""
    validate_year_range(start, end)
    mask = df['jurisdiction'].isin(list(active)) & df['year'].between(start, end)
    return df[mask]


def aggregate_rates(filtered, single_year):
    """Mean rate, total fines and coverage per jurisdiction, highest mean first."""
    rows = []
    for code, values in filtered.groupby('jurisdiction', sort=False):
        if single_year and len(values) == 1:
            rate = values['fines_per_10k'].iloc[0]
        else:
            rate = values['fines_per_10k'].mean()
        rows.append({
            'jurisdiction': code,
            'avg_fines_per_10k': 0.0 if rate != rate else float(rate),
            'total_fines': float(values['fines'].sum()),
            'data_points': int(len(values)),
            'year_range': f"{int(values['year'].min())}-{int(values['year'].max())}",
            'is_single_year': bool(single_year),
        })
    return sorted(rows, key=lambda r: r['avg_fines_per_10k'], reverse=True)


def x_max(aggregated):
    highest = max((r['avg_fines_per_10k'] for r in aggregated), default=0) or EMPTY_X_MAX
    return highest * X_HEADROOM


def value_label(rate, single_year):
    return str(int(round(rate))) if single_year else f'{rate:.1f}'


def axis_label(single_year):
    return 'Fines per 10,000 Licenses' if single_year else 'Average Fines per 10,000 Licenses'


def highest_text(row):
    return f"↑ Highest: {row['jurisdiction']} ({row['avg_fines_per_10k']:.1f})"


def highest_annotation(aggregated):
    if len(aggregated) <= 1:
        return None
    return highest_text(aggregated[0])


def jurisdiction_text(active, all_codes=None):
    all_codes = list(COLOR_SCALE) if all_codes is None else list(all_codes)
    active = [code for code in all_codes if code in set(active)]
    if not active:
        return 'No jurisdictions selected'
    if len(active) == len(all_codes):
        return 'All jurisdictions'
    if len(active) == 1:
        return active[0]
    if len(active) <= 3:
        return ', '.join(active)
    return f'{len(active)} jurisdictions'


def year_text(start, end):
    return f'{start}' if start == end else f'{start}-{end}'


def subtitle(active, start, end, all_codes=None):
    """Describe the current selection, e.g. "NSW, VIC • 2015-2020"."""
    return f'{jurisdiction_text(active, all_codes)} • {year_text(start, end)}'


def selection_key(active, all_codes):
    """'1'/'0' per code in all_codes, the page's key for a checkbox state."""
    return ''.join('1' if code in active else '0' for code in all_codes)


def selection_texts(all_codes):
    """Subtitle text for every combination of ticked jurisdictions."""
    texts = {}
    for mask in range(2 ** len(all_codes)):
        active = [code for i, code in enumerate(all_codes) if mask >> i & 1]
        texts[selection_key(active, all_codes)] = jurisdiction_text(active, all_codes)
    return texts


def range_table(df, years):
    """Bars for every start/end pair the year selects allow, keyed "start-end".

    Each bar carries its display label and highest-bar note; the page only
    drops unticked jurisdictions, which keeps the descending order.
    """
    table = {}
    for i, start in enumerate(years):
        for end in years[i:]:
            single_year = start == end
            rows = aggregate_rates(filter_rates(df, COLOR_SCALE, start, end), single_year)
            for row in rows:
                row['label'] = value_label(row['avg_fines_per_10k'], single_year)
                row['highest'] = highest_text(row)
                row['x_max'] = x_max([row])
            table[f'{start}-{end}'] = {
                'axis': axis_label(single_year),
                'years': year_text(start, end),
                'rows': rows,
            }
    return table


def create_d3_html(df):
    """Create the standalone D3.js horizontal bar chart page."""
    print("Creating D3 HTML for fines per 10K licences...")

    first_year, last_year = int(df['year'].min()), int(df['year'].max())
    years = list(range(first_year, last_year + 1))
    codes = list(COLOR_SCALE)

    def year_options(selected):
        return ''.join(
            f'<option value="{y}"{" selected" if y == selected else ""}>{y}</option>'
            for y in years
        )

    checkboxes = '\n'.join(
        f'''                    <label class="jurisdiction-checkbox">
                        <input type="checkbox" data-jurisdiction="{code}" checked>
                        <span style="color: {color}">{code}</span>
                    </label>'''
        for code, color in COLOR_SCALE.items()
    )

    body = f'''        <div class="card">
            <div class="controls-header">
                <span class="toggle-arrow" id="toggle-filters">&#9656;</span>
                <span>Filters</span>
            </div>
            <div class="filters-content" id="filters-content">
                <div class="jurisdiction-grid">
{checkboxes}
                </div>
                <div style="display:flex;gap:8px;margin-top:10px;">
                    <button class="btn" id="select-all">Select all</button>
                    <button class="btn" id="deselect-all">Deselect all</button>
                </div>
                <div style="display:flex;gap:12px;margin-top:10px;">
                    <label>From <select id="year-start">{year_options(first_year)}</select></label>
                    <label>To <select id="year-end">{year_options(last_year)}</select></label>
                </div>
            </div>
        </div>
        <div class="card">
            <div id="chart"></div>
            <div class="legend" id="legend"></div>
        </div>'''

    script = f'''
        const ranges = {embed_json(range_table(df, years))};
        const selectionText = {embed_json(selection_texts(codes))};
        const yearRangeError = {embed_json(YEAR_RANGE_ERROR)};
        const colorScale = {embed_json(COLOR_SCALE)};
        const allCodes = {embed_json(codes)};
        const config = {{ margin: {{ top: 40, right: 80, bottom: 60, left: 120 }}, height: 600 }};

        let activeJurisdictions = new Set(allCodes);
        const yearRange = {{ start: {first_year}, end: {last_year} }};
        const tooltip = d3.select('body').append('div').attr('class', 'tooltip');

        function currentEntry() {{
            return ranges[`${{yearRange.start}}-${{yearRange.end}}`];
        }}

        function currentRows() {{
            return currentEntry().rows.filter(d => activeJurisdictions.has(d.jurisdiction));
        }}

        function subtitleText() {{
            const key = allCodes.map(c => activeJurisdictions.has(c) ? '1' : '0').join('');
            return `${{selectionText[key]}} • ${{currentEntry().years}}`;
        }}

        function createChart() {{
            d3.select('#chart').selectAll('*').interrupt().remove();
            document.getElementById('dynamic-subtitle').textContent = subtitleText();

            const rows = currentRows();
            if (rows.length === 0) {{
                d3.select('#chart').html('<p class="empty">No data to display. Try adjusting the filters.</p>');
                return;
            }}

            const container = document.getElementById('chart');
            const containerWidth = container.clientWidth || 900;
            const width = containerWidth - config.margin.left - config.margin.right;
            const height = config.height - config.margin.top - config.margin.bottom;

            const svg = d3.select('#chart')
                .append('svg')
                .attr('width', '100%')
                .attr('viewBox', `0 0 ${{containerWidth}} ${{config.height}}`)
                .attr('preserveAspectRatio', 'xMinYMid meet');
            const g = svg.append('g')
                .attr('transform', `translate(${{config.margin.left}},${{config.margin.top}})`);

            const x = d3.scaleLinear().domain([0, rows[0].x_max]).range([0, width]);
            const y = d3.scaleBand().domain(rows.map(d => d.jurisdiction)).range([0, height]).padding(0.3);

            g.append('g')
                .attr('class', 'grid')
                .attr('opacity', 0.3)
                .call(d3.axisBottom(x).tickSize(height).tickFormat(''));
            const tickCount = containerWidth < 480 ? 5 : (containerWidth < 768 ? 7 : 10);
            g.append('g')
                .attr('class', 'axis')
                .attr('transform', `translate(0,${{height}})`)
                .call(d3.axisBottom(x).ticks(tickCount));
            g.append('g').attr('class', 'axis').call(d3.axisLeft(y));
            g.append('text')
                .attr('class', 'axis-label')
                .attr('x', width / 2)
                .attr('y', height + 45)
                .style('text-anchor', 'middle')
                .text(currentEntry().axis);
            g.append('text')
                .attr('class', 'axis-label')
                .attr('transform', 'rotate(-90)')
                .attr('x', -height / 2)
                .attr('y', -80)
                .style('text-anchor', 'middle')
                .text('Jurisdiction');

            const bars = g.selectAll('.bar-group')
                .data(rows)
                .join('g')
                .attr('class', 'bar-group');
            bars.append('rect')
                .attr('class', 'bar')
                .attr('x', 0)
                .attr('y', d => y(d.jurisdiction))
                .attr('height', y.bandwidth())
                .attr('rx', 4)
                .style('fill', d => colorScale[d.jurisdiction] || '#999')
                .attr('width', 0)
                .transition()
                .duration(1000)
                .delay((d, i) => i * 80)
                .ease(d3.easeCubicOut)
                .attr('width', d => x(d.avg_fines_per_10k));
            bars.append('text')
                .attr('x', d => x(d.avg_fines_per_10k) + 6)
                .attr('y', d => y(d.jurisdiction) + y.bandwidth() / 2)
                .attr('dy', '0.35em')
                .style('font-size', '12px')
                .text(d => d.label);

            bars.on('mouseover', (event, d) => {{
                    bars.filter(b => b.jurisdiction !== d.jurisdiction).select('.bar').style('opacity', 0.4);
                    tooltip.html(`
                        <strong style="font-size: 16px; color: ${{colorScale[d.jurisdiction]}}">${{d.jurisdiction}}</strong><br/>
                        <strong>${{d.is_single_year ? 'Fines per 10K:' : 'Avg Fines per 10K:'}}</strong> ${{d.avg_fines_per_10k.toFixed(1)}}<br/>
                        <strong>Total Fines:</strong> ${{d.total_fines.toLocaleString()}}<br/>
                        <strong>Year Range:</strong> ${{d.year_range}}
                    `)
                    .style('left', (event.pageX + 15) + 'px')
                    .style('top', (event.pageY - 28) + 'px')
                    .classed('visible', true);
                }})
                .on('mouseout', () => {{
                    bars.select('.bar').style('opacity', 1);
                    tooltip.classed('visible', false);
                }})
                .on('click', (event, d) => {{
                    event.stopPropagation();
                    focusJurisdiction(d.jurisdiction);
                }});

            if (rows.length > 1) {{
                const top = rows[0];
                g.append('text')
                    .attr('x', x(top.avg_fines_per_10k))
                    .attr('y', y(top.jurisdiction) - 8)
                    .attr('text-anchor', 'end')
                    .style('font-size', '13px')
                    .style('font-weight', '600')
                    .style('fill', colorScale[top.jurisdiction])
                    .text(top.highest);
            }}
        }}

        function createLegend() {{
            const legend = d3.select('#legend');
            legend.selectAll('*').remove();
            Object.entries(colorScale).forEach(([code, color]) => {{
                const item = legend.append('div')
                    .attr('class', 'legend-item')
                    .classed('inactive', !activeJurisdictions.has(code))
                    .on('click', event => {{
                        event.stopPropagation();
                        focusJurisdiction(code);
                    }});
                item.append('div').attr('class', 'legend-color').style('background', color);
                item.append('span').text(code);
            }});
        }}

        function syncCheckboxes() {{
            document.querySelectorAll('.jurisdiction-checkbox input').forEach(cb => {{
                cb.checked = activeJurisdictions.has(cb.dataset.jurisdiction);
            }});
        }}

        function updateChart() {{
            syncCheckboxes();
            createChart();
            createLegend();
        }}

        function focusJurisdiction(code) {{
            activeJurisdictions = new Set([code]);
            updateChart();
        }}

        function resetSelection() {{
            activeJurisdictions = new Set(allCodes);
            updateChart();
        }}

        document.querySelectorAll('.jurisdiction-checkbox').forEach(label => {{
            label.addEventListener('click', e => e.stopPropagation());
        }});
        document.querySelectorAll('.jurisdiction-checkbox input').forEach(cb => {{
            cb.addEventListener('change', e => {{
                const code = e.target.dataset.jurisdiction;
                if (e.target.checked) activeJurisdictions.add(code); else activeJurisdictions.delete(code);
                updateChart();
            }});
        }});
        document.getElementById('select-all').addEventListener('click', e => {{
            e.stopPropagation();
            resetSelection();
        }});
        document.getElementById('deselect-all').addEventListener('click', e => {{
            e.stopPropagation();
            activeJurisdictions.clear();
            updateChart();
        }});

        const filtersContent = document.getElementById('filters-content');
        const toggleArrow = document.getElementById('toggle-filters');
        document.querySelector('.controls-header').addEventListener('click', e => {{
            e.stopPropagation();
            const isHidden = window.getComputedStyle(filtersContent).display === 'none';
            filtersContent.style.display = isHidden ? 'grid' : 'none';
            toggleArrow.classList.toggle('open', isHidden);
        }});
        filtersContent.addEventListener('click', e => e.stopPropagation());

        const applyYearFilter = () => {{
            const start = parseInt(document.getElementById('year-start').value);
            const end = parseInt(document.getElementById('year-end').value);
            if (!ranges[`${{start}}-${{end}}`]) {{
                alert(yearRangeError);
                return;
            }}
            yearRange.start = start;
            yearRange.end = end;
            updateChart();
        }};
        document.getElementById('year-start').addEventListener('change', applyYearFilter);
        document.getElementById('year-end').addEventListener('change', applyYearFilter);

        document.addEventListener('click', event => {{
            const isBar = event.target.classList.contains('bar');
            const isLegend = event.target.closest('#legend');
            if (!isBar && !isLegend) resetSelection();
        }});
        document.addEventListener('keydown', event => {{
            if (event.key === 'Escape') resetSelection();
        }});

        updateChart();

        let resizeTimeout;
        window.addEventListener('resize', () => {{
            clearTimeout(resizeTimeout);
            resizeTimeout = setTimeout(createChart, 250);
        }});
'''

    return page_shell(
        TITLE,
        subtitle(codes, first_year, last_year),
        body,
        script,
        active_page=PAGE,
    )


def plot_fines_per_10k_png(df, output_path, start=None, end=None):
    """Save a static PNG of the bar chart for a year range (default: all years)."""
    start = int(df['year'].min()) if start is None else start
    end = int(df['year'].max()) if end is None else end
    single_year = start == end

    aggregated = aggregate_rates(filter_rates(df, COLOR_SCALE, start, end), single_year)

    fig, ax = plt.subplots(1, 1, figsize=(12, 7))
    labels = [r['jurisdiction'] for r in aggregated]
    values = [r['avg_fines_per_10k'] for r in aggregated]
    colors = [COLOR_SCALE.get(code, '#999999') for code in labels]

    # barh draws bottom-up, so the highest bar gets the top position
    positions = list(range(len(labels)))[::-1]
    ax.barh(positions, values, color=colors)
    ax.set_yticks(positions)
    ax.set_yticklabels(labels)
    for position, value in zip(positions, values):
        ax.text(value, position, f' {value_label(value, single_year)}', va='center', fontsize=10)

    ax.set_xlim(0, x_max(aggregated))
    ax.set_xlabel(axis_label(single_year))
    ax.set_ylabel('Jurisdiction')
    ax.set_title(f'{TITLE}\n{subtitle(COLOR_SCALE, start, end)}', fontsize=15, fontweight='bold', pad=16)
    ax.grid(axis='x', color='#e5e7eb')

    note = highest_annotation(aggregated)
    if note:
        ax.annotate(note, xy=(0.99, 0.99), xycoords='axes fraction', ha='right', va='top',
                    color=COLOR_SCALE.get(aggregated[0]['jurisdiction'], '#333333'), fontweight='bold')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"Chart saved as {output_path}")
    return output_path


def build(data_dir=None, output_dir='site', png=True):
    df = load_fines_per_10k(data_dir)

    html_path = write_html(create_d3_html(df), os.path.join(output_dir, f'{PAGE}.html'))
    if png:
        os.makedirs(os.path.join(output_dir, 'png'), exist_ok=True)
        plot_fines_per_10k_png(df, os.path.join(output_dir, 'png', f'{PAGE}.png'))
    return html_path


def main():
    print("=" * 60)
    print("Creating Fines per 10K Licences Chart")
    print("=" * 60)

    build()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == '__main__':
    main()
