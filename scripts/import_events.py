"""
CSV Import Script for Events

Usage:
    python scripts/import_events.py <path-to-csv>

CSV Format:
    created_at,properties_json

created_at is optional per row (ISO 8601); empty means "now".
"""

import sys
import csv
import json
from pathlib import Path
from datetime import datetime, timezone

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from pymongo import MongoClient
from app.core.config import settings
from app.models.event import new_event_document, validate_property_keys


def parse_row(row: dict) -> dict:
    """Build an event document from one CSV row, raising ValueError when it is unusable"""
    raw = row.get('properties_json')
    if raw is None:
        raise ValueError("properties_json is missing")
    properties = json.loads(raw)
    if not isinstance(properties, dict) or not properties:
        raise ValueError("properties_json must be a non-empty JSON object")
    validate_property_keys(properties)

    created_at = None
    if row.get('created_at') and row['created_at'].strip():
        created_at = datetime.fromisoformat(row['created_at'].strip().replace('Z', '+00:00'))
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

    return new_event_document(properties, now=created_at)


def import_csv(file_path: str, batch_size: int = 1000):
    """
    Import events from CSV file

    Args:
        file_path: Path to CSV file
        batch_size: Number of events to insert per batch
    """
    file_path = Path(file_path)

    if not file_path.exists():
        print(f"Error: File not found: {file_path}")
        sys.exit(1)

    print(f"Starting import from: {file_path}")

    client = MongoClient(settings.mongodb_url, tz_aware=True)
    collection = client[settings.mongodb_database][settings.events_collection]

    total_inserted = 0
    total_skipped = 0

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            reader = csv.DictReader(f)

            # Validate headers
            if 'properties_json' not in (reader.fieldnames or []):
                print("Error: CSV must have a properties_json header")
                print(f"Found headers: {reader.fieldnames}")
                sys.exit(1)

            batch = []

            for i, row in enumerate(reader, 1):
                try:
                    batch.append(parse_row(row))
                except ValueError as e:
                    # json.JSONDecodeError is a ValueError too
                    print(f"Error on row {i}: {e}")
                    total_skipped += 1
                    continue

                if len(batch) >= batch_size:
                    total_inserted += len(collection.insert_many(batch).inserted_ids)
                    print(f"Inserted {total_inserted} events | Skipped: {total_skipped}")
                    batch = []

            # Insert remaining events
            if batch:
                total_inserted += len(collection.insert_many(batch).inserted_ids)
    finally:
        client.close()

    print("\n" + "=" * 50)
    print("Import completed!")
    print(f"Total inserted: {total_inserted}")
    print(f"Total skipped: {total_skipped}")
    print("=" * 50)


def main():
    if len(sys.argv) != 2:
        print("Usage: python scripts/import_events.py <path-to-csv>")
        sys.exit(1)

    import_csv(sys.argv[1])


if __name__ == "__main__":
    main()
