"""
Import the vocabulary catalog from CSV to MongoDB.

The CSV needs `headword` and `gloss` columns; `id` and `position` are
optional (row number and row order are used when missing). Rows are
upserted by id, so re-running the import updates the catalog in place.

Usage:
    python -m scripts.import_catalog path/to/vocabulary.csv [--dry-run]
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd
from pymongo import UpdateOne
from pymongo.collection import Collection

from vocab_core.collection_repo import CATALOG_COLLECTION, get_collection
from vocab_core.schemas import VocabularyItem

REQUIRED_COLUMNS = ("headword", "gloss")


def rows_to_items(df: pd.DataFrame) -> list[VocabularyItem]:
    """
    Convert CSV rows to catalog items, skipping rows without headword or gloss.

    Raises:
        ValueError: If a required column is missing
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"CSV is missing columns: {', '.join(missing)}")

    items = []
    for row_number, row in enumerate(df.to_dict("records"), start=1):
        headword = row["headword"]
        gloss = row["gloss"]
        if pd.isna(headword) or pd.isna(gloss) or not str(headword).strip():
            continue

        item_id = row.get("id")
        position = row.get("position")
        items.append(VocabularyItem(
            id=str(row_number if item_id is None or pd.isna(item_id) else item_id).strip(),
            headword=str(headword).strip(),
            gloss=str(gloss).strip(),
            position=row_number if position is None or pd.isna(position) else int(position),
        ))
    return items


def import_catalog(
    csv_path: Path,
    dry_run: bool = False,
    collection: Collection | None = None
) -> int:
    """
    Upsert the catalog items of a CSV file.

    Returns:
        Number of items imported (or that would be imported in a dry run)
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV not found: {csv_path}")

    df = pd.read_csv(csv_path)
    print(f"Loaded {len(df)} rows from {csv_path}")

    items = rows_to_items(df)
    print(f"Valid catalog items: {len(items)}")

    if dry_run or not items:
        if dry_run:
            print("\n⚠ DRY RUN MODE - No changes were made to MongoDB")
        return len(items)

    if collection is None:
        collection = get_collection(CATALOG_COLLECTION)
    collection.create_index("position")

    operations = [
        UpdateOne(
            {"_id": item.id},
            {"$set": {
                "headword": item.headword,
                "gloss": item.gloss,
                "position": item.position,
            }},
            upsert=True,
        )
        for item in items
    ]
    result = collection.bulk_write(operations, ordered=False)

    print(f"\n{'='*60}")
    print("Import complete!")
    print(f"{'='*60}")
    print(f"Inserted: {result.upserted_count}")
    print(f"Updated:  {result.modified_count}")
    print(f"Total:    {len(items)}")
    return len(items)


def main():
    parser = argparse.ArgumentParser(
        description="Import the vocabulary catalog from CSV to MongoDB"
    )
    parser.add_argument("csv_path", type=Path, help="CSV file with headword and gloss columns")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the CSV without writing to MongoDB"
    )

    args = parser.parse_args()

    import_catalog(args.csv_path, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
