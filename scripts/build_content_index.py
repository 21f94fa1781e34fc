#!/usr/bin/env python3
"""
Build the cross-app content index.

Walks apps/<app>/ under the content root, collects JSON and Markdown content
(or the app's own content-manifest.json) and writes:

    content-index/meta-index.json
    content-index/manifests/<app>/manifest.json

Usage:
    python scripts/build_content_index.py                      # Index every app
    python scripts/build_content_index.py --apps learn-jee     # Only these apps
    python scripts/build_content_index.py --exclude learn-apt  # Skip these apps
    python scripts/build_content_index.py --stats              # Print stats, write nothing
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from iiskills_gateway.config import CONTENT_APPS_DIR, CONTENT_OUTPUT_DIR, CONTENT_ROOT
from iiskills_gateway.services.content_indexer import ContentIndexer


def print_stats(meta_index: dict):
    stats = meta_index["statistics"]
    print(f"\n{'=' * 50}")
    print("CONTENT INDEX")
    print(f"{'=' * 50}")
    print(f"Apps:          {stats['totalApps']}")
    print(f"Content items: {stats['totalContent']}")
    print("\nBy type:")
    for content_type, count in sorted(stats["contentByType"].items(), key=lambda kv: -kv[1]):
        if count:
            print(f"  {content_type:10s} {count}")
    print("\nBy app:")
    for app in meta_index["apps"]:
        print(f"  {app['appId']:24s} {app['contentCount']:5d}  {app['appName']}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Build the iiskills.cloud content index")
    parser.add_argument("--root", default=str(CONTENT_ROOT), help="Monorepo root holding the apps directory")
    parser.add_argument("--apps-dir", default=CONTENT_APPS_DIR, help="Apps directory under the root")
    parser.add_argument("--output", default=CONTENT_OUTPUT_DIR, help="Output directory under the root")
    parser.add_argument("--apps", nargs="*", default=None, help="Only index these app ids")
    parser.add_argument("--exclude", nargs="*", default=None, help="Skip these app ids")
    parser.add_argument("--stats", action="store_true", help="Show statistics without writing files")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    indexer = ContentIndexer(
        args.root,
        apps_dir=args.apps_dir,
        output_dir=args.output,
        include_apps=args.apps,
        exclude_apps=args.exclude,
    )
    try:
        meta_index = indexer.index_all(write=not args.stats)
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print_stats(meta_index)
    if not args.stats:
        print(f"\nWrote {indexer.output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
