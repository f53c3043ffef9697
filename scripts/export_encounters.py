#!/usr/bin/env python3
"""
Encounter Export Script

Writes a user's encounters (or everyone's) to a CSV file in data/csvs/.
"""

import argparse
import csv
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from config.database import SqlDocumentStore
from config.settings import DATA_DIR, Settings

EXPORT_COLUMNS = [
    'encounter_id', 'user_id', 'timestamp', 'encounter_type', 'location',
    'latitude', 'longitude', 'notes', 'recording_url', 'duration',
]


def export_encounters(store, output_path, user_id=None):
    """
    Export encounter rows to CSV.

    Args:
        store (SqlDocumentStore): source database
        output_path (Path): CSV file to write
        user_id (str): limit to one user, or None for all

    Returns:
        int: number of rows written
    """
    rows = store.get_all_encounter_rows(user_id)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return len(rows)


def main():
    parser = argparse.ArgumentParser(description="Export PocketLegal encounters to CSV")
    parser.add_argument("--user", help="Only export this user's encounters")
    parser.add_argument("--output", help="CSV path (default data/csvs/encounters_<timestamp>.csv)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    settings = Settings.from_env()

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_path = Path(args.output) if args.output else DATA_DIR / "csvs" / f"encounters_{timestamp}.csv"

    print("📊 Encounter Export Tool")
    print("=" * 40)
    try:
        count = export_encounters(SqlDocumentStore(settings.database_url), output_path, args.user)
    except Exception as e:
        print(f"❌ Export failed: {e}")
        return 1

    if count == 0:
        print("⚠️  No encounters to export")
    print(f"✅ Exported {count} encounters to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
