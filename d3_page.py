"""
Shared HTML shell for the D3.js chart pages.

Every chart page uses the same head, stylesheet and navigation bar so the
generated site reads as one report.
"""

import html
import json
import os

import numpy as np

NAVY = "#1f2a44"
PURPLE = "#4b3a7a"
LIME = "#81BC00"

D3_SCRIPT = "https://d3js.org/d3.v7.min.js"

NAV_ITEMS = [
    ('index', 'Home'),
    ('q1', 'Police vs Camera'),
    ('q2', 'Jurisdiction Trends'),
    ('q3', 'Fines per 10K'),
    ('q4', 'Detection Methods'),
    ('q5', 'State Heatmap'),
]

STYLE = f'''
        * {{
            box-sizing: border-box;
            margin: 0;
            padding: 0;
        }}
        body {{
            font-family: 'Roboto', sans-serif;
            background: #f7f7fb;
            color: #374151;
        }}
        .nav {{
            display: flex;
            gap: 4px;
            flex-wrap: wrap;
            padding: 12px 24px;
            background: {NAVY};
        }}
        .nav-item {{
            padding: 8px 14px;
            border-radius: 6px;
            color: #d1d5db;
            font-size: 0.875rem;
            text-decoration: none;
        }}
        .nav-item:hover {{
            color: white;
        }}
        .nav-item.active {{
            background: {LIME};
            color: {NAVY};
            font-weight: 600;
        }}
        .page {{
            max-width: 1100px;
            margin: 0 auto;
            padding: 24px 16px;
            display: flex;
            flex-direction: column;
            gap: 16px;
        }}
        .page-header h1 {{
            font-size: 1.4rem;
            font-weight: 700;
            color: {NAVY};
        }}
        .page-header p {{
            margin-top: 6px;
            color: #6b7280;
            font-size: 0.95rem;
        }}
        .card {{
            background: white;
            border-radius: 12px;
            padding: 16px;
            box-shadow: 0 1px 3px rgba(0, 0, 0, 0.08);
        }}
        #chart {{
            width: 100%;
            min-height: 200px;
        }}
        .controls-header {{
            display: flex;
            align-items: center;
            gap: 12px;
            cursor: pointer;
            font-weight: 600;
        }}
        .toggle-arrow {{
            transition: transform 0.2s ease;
        }}
        .toggle-arrow.open {{
            transform: rotate(90deg);
        }}
        .filters-content {{
            display: none;
            margin-top: 12px;
            gap: 12px;
        }}
        .jurisdiction-grid {{
            display: flex;
            flex-wrap: wrap;
            gap: 10px;
        }}
        .jurisdiction-checkbox {{
            display: flex;
            align-items: center;
            gap: 6px;
            font-size: 0.875rem;
            cursor: pointer;
        }}
        .btn {{
            padding: 6px 12px;
            border: 1px solid #d1d5db;
            border-radius: 6px;
            background: white;
            cursor: pointer;
            font-family: 'Roboto', sans-serif;
        }}
        .btn.active {{
            background: {NAVY};
            color: white;
        }}
        .legend {{
            display: flex;
            flex-wrap: wrap;
            gap: 12px;
            margin-top: 8px;
        }}
        .legend-item {{
            display: flex;
            align-items: center;
            gap: 6px;
            cursor: pointer;
            font-size: 0.875rem;
        }}
        .legend-item.inactive {{
            opacity: 0.35;
        }}
        .legend-color {{
            width: 14px;
            height: 14px;
            border-radius: 3px;
        }}
        .axis-label {{
            font-size: 13px;
            font-weight: 500;
            fill: #666;
        }}
        .grid line {{
            stroke: #e5e7eb;
        }}
        .grid path {{
            stroke-width: 0;
        }}
        .tooltip {{
            position: absolute;
            background: rgba(31, 42, 68, 0.95);
            color: white;
            border-radius: 8px;
            padding: 10px 14px;
            font-size: 0.85rem;
            pointer-events: none;
            opacity: 0;
            z-index: 100;
        }}
        .tooltip.visible {{
            opacity: 1;
        }}
        .tooltip-color {{
            display: inline-block;
            width: 10px;
            height: 10px;
            border-radius: 2px;
            margin-right: 6px;
        }}
        .insight-tiles {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(220px, 1fr));
            gap: 12px;
        }}
        .insight-tile {{
            background: white;
            border-radius: 12px;
            padding: 16px;
            box-shadow: 0 1px 3px rgba(0, 0, 0, 0.08);
        }}
        .insight-title {{
            font-weight: 600;
            font-size: 0.9rem;
        }}
        .insight-value {{
            font-size: 1.4rem;
            font-weight: 700;
            margin: 6px 0;
            color: {NAVY};
        }}
        .insight-desc {{
            font-size: 0.85rem;
            color: #6b7280;
        }}
        .error {{
            padding: 24px;
            border-left: 4px solid #d62728;
            background: #fff5f5;
            line-height: 1.6;
        }}
        .empty {{
            text-align: center;
            padding: 40px;
            color: #999;
        }}
        .source {{
            font-size: 0.75rem;
            color: #9ca3af;
            text-align: center;
        }}
'''


def embed_json(obj):
    """Serialise data for a <script> block, converting numpy scalars."""
    def default(value):
        if isinstance(value, np.integer):
            return int(value)
        if isinstance(value, np.floating):
            return None if np.isnan(value) else float(value)
        if isinstance(value, np.ndarray):
            return value.tolist()
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    return json.dumps(obj, default=default).replace('</', '<\\/')


def nav_bar(active_page):
    """Navigation links with the current page marked active."""
    links = []
    for page, label in NAV_ITEMS:
        css = 'nav-item active' if page == active_page else 'nav-item'
        links.append(
            f'<a class="{css}" data-page="{page}" href="{page}.html">{html.escape(label)}</a>'
        )
    return '<nav class="nav">\n        ' + '\n        '.join(links) + '\n    </nav>'


def page_shell(title, subtitle, body, script='', active_page=None, extra_style=''):
    """Wrap a chart body and its script in the shared page layout."""
    return f'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)}</title>
    <script src="{D3_SCRIPT}"></script>
    <link href="https://fonts.googleapis.com/css2?family=Roboto:wght@400;500;600;700&display=swap" rel="stylesheet">
    <style>{STYLE}{extra_style}
    </style>
</head>
<body>
    {nav_bar(active_page)}
    <div class="page">
        <div class="page-header">
            <h1 id="dynamic-title">{html.escape(title)}</h1>
            <p id="dynamic-subtitle">{html.escape(subtitle)}</p>
        </div>
{body}
        <div class="source">
            Source: Australian state and territory road safety enforcement data (aggregated, no personal information)
        </div>
    </div>
    <script>
{script}
    </script>
</body>
</html>'''


def error_page(page, title, message, filename, expected_columns):
    """Page shown when a chart's data could not be loaded."""
    body = f'''        <div class="card">
            <div class="error">
                <strong>Error loading data:</strong><br>
                {html.escape(str(message))}<br><br>
                Please ensure the CSV file is located at: <code>data/{html.escape(filename)}</code><br>
                Expected columns: {html.escape(', '.join(expected_columns))}
            </div>
        </div>'''
    return page_shell(title, 'Data unavailable', body, active_page=page)


def landing_page(charts):
    """Index page with one card per chart.

    Args:
        charts: iterable of (page, title, description) tuples
    """
    cards = []
    for page, title, description in charts:
        cards.append(f'''        <a class="card" href="{page}.html" style="text-decoration: none; color: inherit;">
            <h3 style="color: {PURPLE}; margin-bottom: 6px;">{html.escape(title)}</h3>
            <p class="insight-desc">{html.escape(description)}</p>
        </a>''')

    body = '\n'.join(cards)
    return page_shell(
        'Mobile Phone Enforcement in Australia',
        'How police and camera detection of mobile phone use while driving has changed across jurisdictions',
        body,
        active_page='index',
    )


def write_html(html_text, html_path):
    """Write a page to disk and report its size."""
    directory = os.path.dirname(html_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(html_path, 'w', encoding='utf-8') as f:
        f.write(html_text)

    html_size = os.path.getsize(html_path) / 1024
    print(f"✓ Saved {html_path} ({html_size:.0f} KB)")
    return html_path
