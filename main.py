"""
Terminal client for the Book Tracker API.

Usage:
    python main.py list --shelf read --search tolkien --page 2
    python main.py show 12
    python main.py add title="Dune" author="Frank Herbert" pages=412 exclusiveShelf=read
    python main.py edit 12 rating=5
    python main.py delete 12
    python main.py stats
    python main.py dashboard
    python main.py shelves
    python main.py export books.json
"""

import argparse
import os
import sys
from typing import Dict, List

import httpx

from client.api_client import DEFAULT_BASE_URL, APIError, BookAPIClient
from client.formatting import (
    format_book_line, format_count, format_date, format_rating,
    page_numbers, shelf_label
)
from client.forms import validate_book_form
from utilities.logger import setup_logging


def parse_assignments(pairs: List[str]) -> Dict[str, str]:
    """Parse key=value arguments into a dict."""
    values = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got '{pair}'")
        key, value = pair.split("=", 1)
        values[key.strip()] = value
    return values


def print_book(book: dict) -> None:
    print(f"📖 {book['title']}")
    print(f"   Author:     {book['author']}")
    print(f"   Shelf:      {shelf_label(book.get('exclusiveShelf'))}")
    print(f"   Rating:     {format_rating(book.get('rating'))}")
    print(f"   Pages:      {format_count(book.get('pages'))} (BEq {book.get('beqValue', 0)})")
    print(f"   Date read:  {format_date(book.get('dateRead'))}")
    print(f"   Date added: {format_date(book.get('dateAdded'))}")
    if book.get("bookshelves"):
        print(f"   Bookshelves: {', '.join(book['bookshelves'])}")
    if book.get("review"):
        print(f"   Review: {book['review']}")


def print_form_errors(errors: Dict[str, str]) -> None:
    print("❌ Please fix the following fields:")
    for name, message in errors.items():
        print(f"   {name}: {message}")


def cmd_list(client: BookAPIClient, args) -> int:
    filters = {
        "page": args.page,
        "limit": args.limit,
        "sort": args.sort,
        "order": args.order,
        "shelf": args.shelf,
        "search": args.search,
        "minRating": args.min_rating,
        "maxRating": args.max_rating,
        "startDate": args.start_date,
        "endDate": args.end_date,
    }
    result = client.get_books(filters)

    if not result["data"]:
        print("No books found")
        return 0

    for book in result["data"]:
        print(format_book_line(book))

    pages = page_numbers(result["currentPage"], result["totalPages"])
    if pages:
        links = " ".join(f"[{p}]" if p == result["currentPage"] else str(p) for p in pages)
        print(f"\nPage {links}  ({result['totalItems']} books)")
    return 0


def cmd_show(client: BookAPIClient, args) -> int:
    print_book(client.get_book(args.book_id))
    return 0


def cmd_add(client: BookAPIClient, args) -> int:
    form = validate_book_form(parse_assignments(args.fields))
    if not form.is_valid:
        print_form_errors(form.errors)
        return 1

    book = client.create_book(form.data)
    print(f"✅ Added book #{book['bookId']}")
    return 0


def cmd_edit(client: BookAPIClient, args) -> int:
    current = client.get_book(args.book_id)
    values = {key: value for key, value in current.items() if value is not None}
    values.update(parse_assignments(args.fields))

    form = validate_book_form(values)
    if not form.is_valid:
        print_form_errors(form.errors)
        return 1

    book = client.update_book(args.book_id, form.data)
    print(f"✅ Updated book #{book['bookId']}")
    return 0


def cmd_delete(client: BookAPIClient, args) -> int:
    client.delete_book(args.book_id)
    print(f"🗑️  Deleted book #{args.book_id}")
    return 0


def cmd_stats(client: BookAPIClient, args) -> int:
    stats = client.get_stats()
    print("📊 Reading statistics")
    print(f"   Total books:       {format_count(stats['totalBooks'])}")
    print(f"   Read:              {format_count(stats['readBooks'])}")
    print(f"   Currently reading: {format_count(stats['readingBooks'])}")
    print(f"   To read:           {format_count(stats['toReadBooks'])}")
    print(f"   Pages read:        {format_count(stats['totalPagesRead'])}")
    print(f"   Average rating:    {format_rating(stats['averageRating'])}")
    if stats["topAuthors"]:
        print("   Top authors:")
        for entry in stats["topAuthors"]:
            print(f"     {entry['author']} ({entry['count']})")
    return 0


def cmd_dashboard(client: BookAPIClient, args) -> int:
    cmd_stats(client, args)

    print("\n🕒 Recently added")
    recent = client.get_recent_books(limit=args.limit)
    if not recent:
        print("   No books yet")
    for book in recent:
        print(f"   {format_book_line(book)}")
    return 0


def cmd_shelves(client: BookAPIClient, args) -> int:
    for shelf in client.get_bookshelves():
        print(shelf)
    return 0


def cmd_export(client: BookAPIClient, args) -> int:
    with open(args.output, "w", encoding="utf-8") as handle:
        for chunk in client.export_books():
            handle.write(chunk)
    print(f"✅ Exported books to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Book Tracker terminal client")
    parser.add_argument(
        "--api-url",
        default=os.environ.get("BOOK_TRACKER_API_URL", DEFAULT_BASE_URL),
        help="API base URL (default: %(default)s)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List books")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--limit", type=int, default=10)
    list_parser.add_argument("--sort", default="dateAdded")
    list_parser.add_argument("--order", choices=["asc", "desc"], default="desc")
    list_parser.add_argument("--shelf", choices=["read", "currently-reading", "to-read"])
    list_parser.add_argument("--search")
    list_parser.add_argument("--min-rating", type=float)
    list_parser.add_argument("--max-rating", type=float)
    list_parser.add_argument("--start-date")
    list_parser.add_argument("--end-date")
    list_parser.set_defaults(handler=cmd_list)

    show_parser = subparsers.add_parser("show", help="Show one book")
    show_parser.add_argument("book_id", type=int)
    show_parser.set_defaults(handler=cmd_show)

    add_parser = subparsers.add_parser("add", help="Add a book from key=value fields")
    add_parser.add_argument("fields", nargs="+")
    add_parser.set_defaults(handler=cmd_add)

    edit_parser = subparsers.add_parser("edit", help="Edit a book with key=value fields")
    edit_parser.add_argument("book_id", type=int)
    edit_parser.add_argument("fields", nargs="+")
    edit_parser.set_defaults(handler=cmd_edit)

    delete_parser = subparsers.add_parser("delete", help="Delete a book")
    delete_parser.add_argument("book_id", type=int)
    delete_parser.set_defaults(handler=cmd_delete)

    subparsers.add_parser("stats", help="Show reading statistics").set_defaults(handler=cmd_stats)
    dashboard_parser = subparsers.add_parser("dashboard", help="Show statistics and recently added books")
    dashboard_parser.add_argument("--limit", type=int, default=5)
    dashboard_parser.set_defaults(handler=cmd_dashboard)

    subparsers.add_parser("shelves", help="List bookshelf tags").set_defaults(handler=cmd_shelves)

    export_parser = subparsers.add_parser("export", help="Export all books to a JSON file")
    export_parser.add_argument("output")
    export_parser.set_defaults(handler=cmd_export)

    return parser


def main(argv=None) -> int:
    """Main function to run the terminal client."""
    setup_logging(log_level="WARNING", log_format="console")
    args = build_parser().parse_args(argv)

    with BookAPIClient(base_url=args.api_url) as client:
        try:
            return args.handler(client, args)
        except APIError as e:
            print(f"❌ {e.message}")
            for error in e.errors:
                print(f"   {error.get('field')}: {error.get('message')}")
            return 1
        except ValueError as e:
            print(f"❌ {e}")
            return 1
        except httpx.HTTPError as e:
            print(f"❌ Could not reach the API at {args.api_url}: {e}")
            return 1


if __name__ == "__main__":
    sys.exit(main())
