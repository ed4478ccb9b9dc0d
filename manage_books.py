#!/usr/bin/env python3
"""
Book Database Management Utility

This script works directly against MongoDB:
- Import a Goodreads library export CSV
- Export every book to a JSON file
- Create indexes and resync the book id counter
- Show collection statistics
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from books.database import MongoDBManager
from books.goodreads import read_goodreads_csv
from utilities.config import config
from utilities.logger import setup_logging


def create_manager() -> MongoDBManager:
    return MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        collection_name=config.mongodb_collection,
        client_options=config.get_client_options()
    )


async def import_csv(csv_path: str) -> bool:
    """Import a Goodreads CSV export."""
    print(f"\n📥 Importing {csv_path}")
    db_manager = create_manager()
    try:
        await db_manager.connect()
        stats = await db_manager.import_books(read_goodreads_csv(csv_path))

        print(f"✅ Added:   {stats.added}")
        print(f"🔁 Updated: {stats.updated}")
        print(f"❌ Failed:  {stats.failed}")
        for error in stats.errors:
            print(f"   {error}")
        return stats.failed == 0
    finally:
        await db_manager.disconnect()


async def export_json(output_path: str) -> bool:
    """Write every book to a JSON array file."""
    print(f"\n📤 Exporting books to {output_path}")
    db_manager = create_manager()
    count = 0
    try:
        await db_manager.connect()
        with open(output_path, "w", encoding="utf-8") as handle:
            handle.write("[")
            async for book in db_manager.iter_books():
                if count:
                    handle.write(",")
                handle.write(json.dumps(book.model_dump(mode="json", by_alias=True)))
                count += 1
            handle.write("]")
        print(f"✅ Exported {count} books")
        return True
    finally:
        await db_manager.disconnect()


async def ensure_indexes() -> bool:
    """Connecting creates the indexes and resyncs the id counter."""
    db_manager = create_manager()
    try:
        await db_manager.connect()
        seq = await db_manager.sync_book_id_counter()
        print(f"✅ Indexes created, next book id will be {seq + 1}")
        return True
    finally:
        await db_manager.disconnect()


async def show_statistics() -> bool:
    """Show basic collection statistics."""
    db_manager = create_manager()
    try:
        await db_manager.connect()
        count = await db_manager.get_books_count()
        bookshelves = await db_manager.get_bookshelves()
        average_pages = await db_manager.get_average_pages()

        print(f"📚 Total Books: {count}")
        print(f"🏷️  Bookshelf tags: {len(bookshelves)}")
        print(f"📄 Average pages: {average_pages:.0f}" if average_pages else "📄 Average pages: n/a")
        return True
    finally:
        await db_manager.disconnect()


def print_usage():
    print("Usage: python manage_books.py [import-csv|export|ensure-indexes|stats] [path]")
    print()
    print("Commands:")
    print("  import-csv     - Import a Goodreads library export CSV")
    print("  export         - Export all books to a JSON file")
    print("  ensure-indexes - Create indexes and resync the book id counter")
    print("  stats          - Show collection statistics")
    print()
    print("Examples:")
    print("  python manage_books.py import-csv goodreads_library_export.csv")
    print("  python manage_books.py export books.json")


async def main() -> int:
    """Main function."""
    if len(sys.argv) < 2:
        print_usage()
        return 1

    command = sys.argv[1].lower()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    if command in ("import-csv", "export") and len(sys.argv) < 3:
        print(f"❌ Error: path required for {command} command")
        print_usage()
        return 1

    try:
        if command == "import-csv":
            ok = await import_csv(sys.argv[2])
        elif command == "export":
            ok = await export_json(sys.argv[2])
        elif command == "ensure-indexes":
            ok = await ensure_indexes()
        elif command == "stats":
            ok = await show_statistics()
        else:
            print(f"❌ Unknown command: {command}")
            print("Available commands: import-csv, export, ensure-indexes, stats")
            return 1
    except Exception as e:
        print(f"❌ Error: {e}")
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
