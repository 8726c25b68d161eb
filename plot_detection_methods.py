#!/usr/bin/env python3
"""
Create the stacked bar chart of camera vs police fines by jurisdiction (Q4).

Each bar stacks camera fines under police fines. The page switches between
absolute counts and proportional (100%) stacks, lets readers hide either
detection method, and summarises the selection in four insight tiles.
"""

import html
import math
import os
from decimal import ROUND_HALF_UP, Decimal

import matplotlib.pyplot as plt

from d3_page import embed_json, page_shell, write_html
from fines_data import DETECTION_METHODS_CSV, load_detection_methods, records

PAGE = 'q4'
TITLE = 'Fine Detection Methods by Jurisdiction'
CSV_FILE = DETECTION_METHODS_CSV
EXPECTED_COLUMNS = ['JURISDICTION', 'Camera issued fines', 'Police issued fines']

# Bottom to top
STACK_KEYS = ['camera', 'police']
COLORS = {
    'camera': '#FFAEB4',
    'police': '#BEDEDA',
}
LABELS = {
    'camera': 'Camera issued fines',
    'police': 'Police issued fines',
}
MODES = ('absolute', 'proportional')

Y_HEADROOM = 1.1
POLICE_HEAVY_SHARE = 0.25

SI_PREFIXES = {
    -8: 'y', -7: 'z', -6: 'a', -5: 'f', -4: 'p', -3: 'n', -2: 'µ', -1: 'm',
    0: '', 1: 'k', 2: 'M', 3: 'G', 4: 'T', 5: 'P', 6: 'E', 7: 'Z', 8: 'Y',
}


def si_format(value):
    """Two significant digits with an SI suffix, e.g. 12345 -> '12k'.

    Halves round up, as d3's toExponential-based formatting does.
    """
    if value == 0:
        return '0.0'
    quantum = Decimal(1).scaleb(math.floor(math.log10(abs(value))) - 1)
    rounded = float(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    exponent = math.floor(math.log10(abs(rounded)))
    group = max(-8, min(8, exponent // 3))
    scaled = rounded / 10 ** (group * 3)
    decimals = max(0, 1 - (exponent - group * 3))
    return f'{scaled:.{decimals}f}{SI_PREFIXES[group]}'


def format_share(pct):
    """Percentage with a trailing .0 hidden."""
    return f'{pct:.0f}%' if pct % 1 == 0 else f'{pct:.1f}%'


def _share(part, total):
    return part / total * 100 if total > 0 else 0.0


def stack_layers(df, mode='absolute'):
    """Stack camera then police fines for every jurisdiction.

    Returns one layer per key in STACK_KEYS. Each segment carries its
    [y0, y1] bounds in the chosen mode plus the absolute counts and total,
    which the tooltips need in both modes.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown stack mode: {mode}")

    layers = {key: [] for key in STACK_KEYS}
    for row in df.itertuples(index=False):
        base = 0.0
        for key in STACK_KEYS:
            count = float(getattr(row, key))
            value = count if mode == 'absolute' else _share(count, row.total)
            layers[key].append({
                'jurisdiction': row.jurisdiction,
                'y0': base,
                'y1': base + value,
                'value': value,
                'count': count,
                'total': float(row.total),
                'share': f'{_share(count, row.total):.1f}%',
            })
            base += value
    return [{'key': key, 'segments': layers[key]} for key in STACK_KEYS]


def y_max(df, mode='absolute'):
    top = 100 if mode == 'proportional' else float(df['total'].max()) if len(df) else 0.0
    return top * Y_HEADROOM


def total_label(row, mode, camera_visible=True, police_visible=True):
    """Height and text of the label above one stack.

    The height is the top of the highest visible segment; police sits on top
    of camera, so a visible police layer always reaches the full stack.
    """
    camera, police, total = float(row['camera']), float(row['police']), float(row['total'])

    if mode == 'proportional':
        camera_pct = _share(camera, total)
        if camera_visible and police_visible:
            return 100.0, '100%'
        if camera_visible:
            return camera_pct, format_share(camera_pct)
        if police_visible:
            return 100.0, format_share(_share(police, total))
        return 0.0, ''

    shown = (camera if camera_visible else 0.0) + (police if police_visible else 0.0)
    if police_visible:
        height = camera + police
    elif camera_visible:
        height = camera
    else:
        height = 0.0
    return height, si_format(shown) if shown > 0 else ''


def label_table(row):
    """Every label variant keyed by mode then visibility ('11' = both shown)."""
    table = {}
    for mode in MODES:
        table[mode] = {}
        for camera_visible in (True, False):
            for police_visible in (True, False):
                key = f'{int(camera_visible)}{int(police_visible)}'
                height, text = total_label(row, mode, camera_visible, police_visible)
                table[mode][key] = {'y': height, 'text': text}
    return table


def trend_summary(count, pct_camera, pct_police, police_heavy_count):
    if count == 0:
        return 'No data selected.'
    if pct_police > 70 and police_heavy_count == count:
        return ('Enforcement is broadly uniform across Australia, but dominated by police '
                'rather than automated cameras in the current selection.')
    if pct_camera > 70:
        return 'Automated camera enforcement dominates in the current selection.'
    if police_heavy_count > 1 and pct_police > 60:
        return 'Most jurisdictions rely on police for enforcement, with little camera presence.'
    if 40 < pct_camera < 60:
        return 'Enforcement is balanced between cameras and police.'
    return 'Enforcement patterns are mixed across selected jurisdictions.'


def summarize_insights(df):
    """Figures for the insight tiles of the current selection."""
    count = len(df)
    top = None
    if count:
        top_row = df.loc[df['total'].idxmax()]
        top = {'jurisdiction': top_row['jurisdiction'], 'total': float(top_row['total'])}

    total_all = float(df['total'].sum()) if count else 0.0
    pct_camera = _share(float(df['camera'].sum()), total_all) if count else 0.0
    pct_police = _share(float(df['police'].sum()), total_all) if count else 0.0

    with_fines = df[df['total'] > 0]
    police_heavy = int((with_fines['police'] / with_fines['total'] > POLICE_HEAVY_SHARE).sum())

    return {
        'top': top,
        'pct_camera': pct_camera,
        'pct_police': pct_police,
        'police_heavy_count': police_heavy,
        'trend': trend_summary(count, pct_camera, pct_police, police_heavy),
    }


def selection_key(codes, chosen):
    return ''.join('1' if code in chosen else '0' for code in codes)


def selection_table(df):
    """Insight tiles and y-axis tops for every combination of ticked jurisdictions.

    Keyed by selection_key over the rows of df in order, which is how the
    page reads its checkboxes.
    """
    codes = df['jurisdiction'].tolist()
    table = {}
    for mask in range(2 ** len(codes)):
        chosen = [code for i, code in enumerate(codes) if mask >> i & 1]
        subset = df[df['jurisdiction'].isin(chosen)]
        insights = summarize_insights(subset)
        top = insights['top']
        table[selection_key(codes, chosen)] = {
            'top': html.escape(top['jurisdiction']) if top else '—',
            'top_total': f"{si_format(top['total'])} total fines" if top else '',
            'camera': f"{insights['pct_camera']:.1f}%",
            'police': f"{insights['pct_police']:.1f}%",
            'police_heavy': insights['police_heavy_count'],
            'trend': insights['trend'],
            'y_max': {mode: y_max(subset, mode) for mode in MODES},
        }
    return table


def create_d3_html(df):
    """Create the standalone D3.js stacked bar chart page."""
    print("Creating D3 HTML for camera vs police fines...")

    rows = records(df)
    for row in rows:
        row['labels'] = label_table(row)

    stacks = {mode: stack_layers(df, mode) for mode in MODES}

    checkboxes = '\n'.join(
        f'''                    <label class="jurisdiction-checkbox checkbox-label">
                        <input type="checkbox" value="{html.escape(row['jurisdiction'])}" checked>
                        <span>{html.escape(row['jurisdiction'])}</span>
                    </label>'''
        for row in rows
    )

    body = f'''        <div class="card">
            <div class="controls-header">
                <span class="toggle-arrow" id="toggle-filters">&#9656;</span>
                <span>Filter jurisdictions</span>
                <div id="stack-mode-toggle" style="display: flex; gap: 8px; margin-left: auto;">
                    <button class="btn stack-mode-btn active" data-mode="absolute">Absolute</button>
                    <button class="btn stack-mode-btn" data-mode="proportional">Proportional</button>
                </div>
            </div>
            <div class="filters-content" id="filters-content">
                <div class="jurisdiction-grid">
{checkboxes}
                </div>
                <div style="display:flex;gap:8px;margin-top:10px;">
                    <button class="btn" id="select-all">Select all</button>
                    <button class="btn" id="deselect-all">Deselect all</button>
                </div>
            </div>
        </div>
        <div class="card">
            <div id="chart"></div>
            <div class="legend" id="legend"></div>
        </div>
        <div class="insight-tiles" id="insight-tiles"></div>'''

    script = f'''
        const allData = {embed_json(rows)};
        const selections = {embed_json(selection_table(df))};
        const stacks = {embed_json(stacks)};
        const colors = {embed_json(COLORS)};
        const labels = {embed_json(LABELS)};
        const stackKeys = {embed_json(STACK_KEYS)};
        const config = {{ margin: {{ top: 40, right: 60, bottom: 80, left: 100 }}, height: 500 }};

        let stackMode = 'absolute';
        let selected = new Set(allData.map(d => d.jurisdiction));
        const visible = {{ camera: true, police: true }};
        const fmt = d3.format('.2s');
        const tooltip = d3.select('body').append('div').attr('class', 'tooltip');

        function visibilityKey() {{
            return `${{visible.camera ? 1 : 0}}${{visible.police ? 1 : 0}}`;
        }}

        function createChart() {{
            d3.select('#chart').selectAll('*').remove();
            const rows = allData.filter(d => selected.has(d.jurisdiction));
            const view = selections[allData.map(d => selected.has(d.jurisdiction) ? '1' : '0').join('')];
            renderInsightTiles(view);

            if (rows.length === 0) {{
                d3.select('#chart').append('div')
                    .attr('class', 'empty')
                    .text('No jurisdictions selected. Please select at least one jurisdiction from the filters.');
                return;
            }}

            const container = document.getElementById('chart');
            const containerWidth = container.clientWidth || 900;
            const width = containerWidth - config.margin.left - config.margin.right;
            const height = config.height - config.margin.top - config.margin.bottom;

            const svg = d3.select('#chart')
                .append('svg')
                .attr('width', '100%')
                .attr('viewBox', `0 0 ${{containerWidth}} ${{config.height}}`);
            const g = svg.append('g')
                .attr('transform', `translate(${{config.margin.left}},${{config.margin.top}})`);

            const x = d3.scaleBand().domain(rows.map(d => d.jurisdiction)).range([0, width]).padding(0.3);
            const y = d3.scaleLinear().domain([0, view.y_max[stackMode]]).range([height, 0]);

            g.append('g')
                .attr('class', 'axis')
                .attr('transform', `translate(0,${{height}})`)
                .call(d3.axisBottom(x));
            g.append('g')
                .attr('class', 'axis')
                .call(d3.axisLeft(y).ticks(8).tickFormat(stackMode === 'proportional' ? d => d + '%' : fmt));
            g.append('text')
                .attr('class', 'axis-label')
                .attr('transform', 'rotate(-90)')
                .attr('x', -height / 2)
                .attr('y', -70)
                .style('text-anchor', 'middle')
                .text(stackMode === 'proportional' ? 'Percentage of Total Fines (%)' : 'Number of Fines');
            g.append('text')
                .attr('class', 'axis-label')
                .attr('x', width / 2)
                .attr('y', height + 50)
                .style('text-anchor', 'middle')
                .text('Jurisdiction');

            stacks[stackMode].forEach(layer => {{
                const segments = layer.segments.filter(s => selected.has(s.jurisdiction));
                g.append('g')
                    .attr('class', `stack-layer layer-${{layer.key}}`)
                    .style('opacity', visible[layer.key] ? 1 : 0)
                    .selectAll('rect')
                    .data(segments)
                    .join('rect')
                    .attr('class', 'bar-segment')
                    .attr('x', d => x(d.jurisdiction))
                    .attr('width', x.bandwidth())
                    .attr('y', height)
                    .attr('height', 0)
                    .style('fill', colors[layer.key])
                    .on('mouseover', function(event, d) {{
                        d3.select(this).style('filter', 'brightness(1.1)');
                        tooltip.html(`
                            <div class="tooltip-title"><strong>${{d.jurisdiction}}</strong></div>
                            <div><span class="tooltip-color" style="background: ${{colors[layer.key]}}"></span>${{labels[layer.key]}}: ${{d3.format(',')(d.count)}} (${{d.share}})</div>
                            <div style="margin-top: 6px;"><strong>Total: ${{d3.format(',')(d.total)}}</strong></div>
                        `)
                        .style('left', (event.pageX + 15) + 'px')
                        .style('top', (event.pageY - 10) + 'px')
                        .classed('visible', true);
                    }})
                    .on('mouseout', function() {{
                        d3.select(this).style('filter', 'none');
                        tooltip.classed('visible', false);
                    }})
                    .transition()
                    .duration(800)
                    .delay((d, i) => i * 80)
                    .ease(d3.easeCubicOut)
                    .attr('y', d => y(d.y1))
                    .attr('height', d => y(d.y0) - y(d.y1));
            }});

            g.selectAll('.total-label')
                .data(rows)
                .join('text')
                .attr('class', 'total-label')
                .attr('x', d => x(d.jurisdiction) + x.bandwidth() / 2)
                .attr('text-anchor', 'middle')
                .style('font-size', '12px')
                .style('font-weight', '600');
            updateTotalLabels(y);

            svg.on('click', event => {{
                if (event.target.tagName === 'svg') resetAllFilters();
            }});
        }}

        function updateTotalLabels(y) {{
            d3.selectAll('.total-label')
                .attr('y', d => y(d.labels[stackMode][visibilityKey()].y) - 5)
                .text(d => d.labels[stackMode][visibilityKey()].text);
        }}

        function createLegend() {{
            const legend = d3.select('#legend');
            legend.selectAll('*').remove();
            stackKeys.forEach(key => {{
                const item = legend.append('div')
                    .attr('class', 'legend-item')
                    .classed('inactive', !visible[key])
                    .on('click', function() {{
                        visible[key] = !visible[key];
                        d3.select(this).classed('inactive', !visible[key]);
                        createChart();
                    }});
                item.append('div').attr('class', 'legend-color').style('background-color', colors[key]);
                item.append('span').text(labels[key]);
            }});
        }}

        function renderInsightTiles(view) {{
            const container = document.getElementById('insight-tiles');
            container.innerHTML = `
                <div class="insight-tile">
                    <div class="insight-title">Top Jurisdiction</div>
                    <div class="insight-value">${{view.top}}</div>
                    <div class="insight-desc">${{view.top_total}}</div>
                </div>
                <div class="insight-tile">
                    <div class="insight-title">Camera vs Police Balance</div>
                    <div class="insight-value" style="font-size:1.1rem;">
                        Camera: ${{view.camera}}<br>Police: ${{view.police}}
                    </div>
                </div>
                <div class="insight-tile">
                    <div class="insight-title">Distribution Pattern</div>
                    <div class="insight-value">${{view.police_heavy}} state${{view.police_heavy === 1 ? '' : 's'}}</div>
                    <div class="insight-desc">with &gt;25% police fines</div>
                </div>
                <div class="insight-tile">
                    <div class="insight-title">High-Level Trend Summary</div>
                    <div class="insight-desc" style="font-size:1.05rem;font-weight:500;">${{view.trend}}</div>
                </div>
            `;
        }}

        function applyFilters() {{
            selected = new Set(
                Array.from(document.querySelectorAll('.checkbox-label input[type="checkbox"]:checked'))
                    .map(cb => cb.value)
            );
            createChart();
        }}

        function resetAllFilters() {{
            document.querySelectorAll('.checkbox-label input[type="checkbox"]').forEach(cb => {{
                cb.checked = true;
            }});
            applyFilters();
        }}

        document.querySelectorAll('.checkbox-label input[type="checkbox"]').forEach(cb => {{
            cb.addEventListener('change', applyFilters);
        }});
        document.getElementById('select-all').addEventListener('click', e => {{
            e.preventDefault();
            resetAllFilters();
        }});
        document.getElementById('deselect-all').addEventListener('click', e => {{
            e.preventDefault();
            document.querySelectorAll('.checkbox-label input[type="checkbox"]').forEach(cb => {{
                cb.checked = false;
            }});
            applyFilters();
        }});
        document.querySelectorAll('.stack-mode-btn').forEach(btn => {{
            btn.addEventListener('click', function(e) {{
                e.stopPropagation();
                stackMode = this.dataset.mode;
                document.querySelectorAll('.stack-mode-btn').forEach(b => b.classList.remove('active'));
                this.classList.add('active');
                createChart();
            }});
        }});

        const filtersContent = document.getElementById('filters-content');
        const toggleArrow = document.getElementById('toggle-filters');
        document.querySelector('.controls-header').addEventListener('click', e => {{
            e.preventDefault();
            const isHidden = window.getComputedStyle(filtersContent).display === 'none';
            filtersContent.style.display = isHidden ? 'grid' : 'none';
            toggleArrow.classList.toggle('open', isHidden);
        }});
        document.addEventListener('keydown', event => {{
            if (event.key === 'Escape') resetAllFilters();
        }});

        createLegend();
        createChart();

        let resizeTimer;
        window.addEventListener('resize', () => {{
            clearTimeout(resizeTimer);
            resizeTimer = setTimeout(createChart, 250);
        }});
'''

    return page_shell(
        TITLE,
        'Camera-detected vs police-issued mobile phone fines, largest total first',
        body,
        script,
        active_page=PAGE,
    )


def plot_detection_methods_png(df, output_path, mode='absolute'):
    """Save a static PNG of the stacked bar chart."""
    layers = stack_layers(df, mode)

    fig, ax = plt.subplots(1, 1, figsize=(12, 7))
    positions = range(len(df))
    for layer in layers:
        key = layer['key']
        ax.bar(
            positions,
            [s['value'] for s in layer['segments']],
            bottom=[s['y0'] for s in layer['segments']],
            color=COLORS[key],
            label=LABELS[key],
            width=0.7,
        )

    for position, (_, row) in zip(positions, df.iterrows()):
        height, text = total_label(row, mode)
        ax.text(position, height, text, ha='center', va='bottom', fontsize=10, fontweight='bold')

    ax.set_xticks(list(positions))
    ax.set_xticklabels(df['jurisdiction'])
    ax.set_ylim(0, y_max(df, mode) or 1)
    ax.set_xlabel('Jurisdiction')
    ax.set_ylabel('Percentage of Total Fines (%)' if mode == 'proportional' else 'Number of Fines')
    ax.set_title(TITLE, fontsize=16, fontweight='bold', pad=16)
    ax.legend(frameon=False)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"Chart saved as {output_path}")
    return output_path


def build(data_dir=None, output_dir='site', png=True):
    df = load_detection_methods(data_dir)

    insights = summarize_insights(df)
    print(f"Top jurisdiction: {insights['top']['jurisdiction'] if insights['top'] else '—'}")
    print(f"Camera share: {insights['pct_camera']:.1f}%  Police share: {insights['pct_police']:.1f}%")

    html_path = write_html(create_d3_html(df), os.path.join(output_dir, f'{PAGE}.html'))
    if png:
        os.makedirs(os.path.join(output_dir, 'png'), exist_ok=True)
        plot_detection_methods_png(df, os.path.join(output_dir, 'png', f'{PAGE}.png'))
    return html_path


def main():
    print("=" * 60)
    print("Creating Camera vs Police Fines Chart")
    print("=" * 60)

    build()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == '__main__':
    main()
