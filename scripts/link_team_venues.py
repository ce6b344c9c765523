"""
Link every team's venue snapshot to a venue with coordinates.

    python scripts/link_team_venues.py [--country Spain] [--json]

Safe to re-run: already-linked teams are counted and left alone.
"""

import argparse
import json
import os
import sys

# Add the app directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from overlap_app.catalog.venue_linker import VenueLinker
from overlap_app.database import get_database_stats, init_database
from overlap_app.log import log


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Link teams to venues with coordinates.")
    parser.add_argument("--country", default=None, help="Only link teams from this country.")
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    init_database()

    log("🔗 Linking team venues...")
    report = VenueLinker().run(country=args.country)
    summary = report.to_dict()

    if args.json:
        print(json.dumps(summary, indent=2, ensure_ascii=False))
    else:
        print(f"\n📊 Processed {summary['total']} teams")
        for key in ('linkedNow', 'alreadyLinked', 'foundNoCoordinates', 'notFound', 'errors', 'ambiguous'):
            print(f"   {key:>20}: {summary[key]}")
        for entry in summary['samples'].get('notFound', [])[:10]:
            hint = entry.get('suggestion')
            extra = f" (closest: {hint['venue']}, {hint['score']})" if hint else ""
            print(f"   ❌ {entry['team']} [{entry['country']}]{extra}")

    stats = get_database_stats()
    print(f"\n🏟️  {stats['teams_with_venue_id']}/{stats['team_count']} teams linked to a venue")
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
