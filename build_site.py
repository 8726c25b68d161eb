#!/usr/bin/env python3
"""
Build every mobile phone fines chart into a static site.

Usage:
    python build_site.py [--data-dir data] [--output-dir site] [--only Q1 --only Q5] [--no-png]
"""

import argparse
import os
import sys

import create_d3_heatmap
import plot_annual_fines
import plot_detection_methods
import plot_fines_per_10k
import plot_jurisdiction_trends
from d3_page import error_page, landing_page, write_html
from fines_data import FinesDataError

# (key, module, landing page description)
CHARTS = [
    ('Q1', plot_annual_fines,
     'Police versus camera detected fines each year, with the 2020 camera rollout annotated.'),
    ('Q2', plot_jurisdiction_trends,
     'Annual fines for every state and territory on one chart, with jurisdiction filters.'),
    ('Q3', plot_fines_per_10k,
     'Fines per 10,000 licence holders, averaged over a chosen year range.'),
    ('Q4', plot_detection_methods,
     'Camera and police fines stacked per jurisdiction, as counts or shares.'),
    ('Q5', create_d3_heatmap,
     'A map of fines by state, stepping through the years with a slider.'),
]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Build the mobile phone fines chart site')
    parser.add_argument('--data-dir', default=None,
                        help='Directory holding the Q1-Q5 CSV files (default: data/)')
    parser.add_argument('--output-dir', default='site',
                        help='Directory for the generated HTML and PNG files')
    parser.add_argument('--geojson', default=None,
                        help='Local path or URL of the Australian states GeoJSON')
    parser.add_argument('--no-png', action='store_true',
                        help='Skip the static matplotlib PNGs')
    parser.add_argument('--only', action='append', type=str.upper,
                        choices=[key for key, _, _ in CHARTS],
                        help='Build only this chart (repeatable)')
    return parser.parse_args(argv)


def build_chart(key, module, args):
    """Build one chart page, writing its error page if the data is unusable.

    Returns:
        True if the chart was built, False if an error page was written
    """
    print(f"\n[{key}] {module.TITLE}")
    kwargs = dict(data_dir=args.data_dir, output_dir=args.output_dir, png=not args.no_png)
    if module is create_d3_heatmap:
        kwargs['geojson'] = args.geojson

    try:
        module.build(**kwargs)
    except FinesDataError as err:
        print(f"  ERROR: {err}")
        page = error_page(module.PAGE, module.TITLE, err, module.CSV_FILE, module.EXPECTED_COLUMNS)
        write_html(page, os.path.join(args.output_dir, f'{module.PAGE}.html'))
        return False
    return True


def main(argv=None):
    args = parse_args(argv)

    print("=" * 60)
    print("Building Mobile Phone Fines Site")
    print("=" * 60)

    selected = [c for c in CHARTS if not args.only or c[0] in args.only]
    failed = []
    for key, module, _ in selected:
        if not build_chart(key, module, args):
            failed.append(key)

    write_html(
        landing_page([(module.PAGE, module.TITLE, description) for _, module, description in CHARTS]),
        os.path.join(args.output_dir, 'index.html'),
    )

    print("\n" + "=" * 60)
    if failed:
        print(f"Done with errors: {', '.join(failed)}")
    else:
        print(f"Done! Open {os.path.join(args.output_dir, 'index.html')} in a browser.")
    print("=" * 60)
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
