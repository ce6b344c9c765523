"""
Seed the catalog with popular teams from API-Sports.

    API_SPORTS_KEY=... python scripts/seed_catalog.py [--names "Real Madrid,Arsenal"]

Stores the top three provider matches per name.
"""

import argparse
import os
import sys

# Add the app directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv

from overlap_app.cache import CacheRegistry
from overlap_app.catalog.name_resolver import NameResolver
from overlap_app.catalog.orchestrator import TeamSearchOrchestrator
from overlap_app.database import get_database_stats, init_database
from overlap_app.log import log
from overlap_app.providers.api_sports import ApiSportsProvider


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed popular teams from the external provider.")
    parser.add_argument("--names", default="", help="Comma-separated team names (default: built-in list).")
    return parser.parse_args()


def main() -> int:
    load_dotenv()
    args = parse_args()
    names = [name.strip() for name in args.names.split(",") if name.strip()] or None

    init_database()
    caches = CacheRegistry()
    provider = ApiSportsProvider(
        api_key=os.environ.get('API_SPORTS_KEY'),
        base_url=os.environ.get('API_SPORTS_URL'),
    )
    if not provider.api_key:
        print("❌ API_SPORTS_KEY is not set")
        return 2

    log(f"🌱 Seeding catalog from {provider.name}")
    orchestrator = TeamSearchOrchestrator(NameResolver(caches.resolver), provider, caches.query)
    try:
        created = orchestrator.populate_popular_teams(names)
    finally:
        provider.close()

    stats = get_database_stats()
    print(f"✅ Stored {created} new teams ({stats['team_count']} in catalog)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
