"""
Record provider-specific names for canonical teams.

    python scripts/apply_name_map.py mappings.json

The file holds {"<provider name>": "<canonical name>", ...}. Applying the
same file twice leaves the catalog unchanged the second time.
"""

import argparse
import json
import os
import sys

# Add the app directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from overlap_app.cache import CachePool, TTL_RESOLVER
from overlap_app.catalog.name_resolver import NameResolver
from overlap_app.database import init_database
from overlap_app.log import log


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply a provider-name → canonical-name map.")
    parser.add_argument("mapping_file", help="JSON object of {provider name: canonical name}.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    with open(args.mapping_file, 'r', encoding='utf-8') as f:
        mapping = json.load(f)
    if not isinstance(mapping, dict):
        print("❌ Mapping file must contain a JSON object")
        return 2

    init_database()
    resolver = NameResolver(CachePool('resolver', TTL_RESOLVER))

    log(f"🗺️  Applying {len(mapping)} name mappings...")
    result = resolver.apply_name_map(mapping)
    for key, value in result.to_dict().items():
        print(f"   {key:>15}: {value}")
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
