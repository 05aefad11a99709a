#!/usr/bin/env python3
"""
SST - Promise Document Ingest

Main entry point for SST. Reads promise documents (JSON) and creates or
updates them, with everything they reference, in the content store.
"""

import json
import logging
import sys
import argparse
from pathlib import Path
from typing import Any, Dict

from sst.config import config
from sst.database import DatabaseManager
from sst.engine import RequestCoordinator
from sst.errors import SSTError
from sst.media import HttpMediaFetcher, MockMediaFetcher


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file)
        ]
    )


def load_request(path: str) -> Dict[str, Any]:
    """
    Load a request document from a JSON file ("-" reads stdin).

    Args:
        path: Path to the JSON file

    Returns:
        The decoded request body
    """
    if path == "-":
        return json.load(sys.stdin)
    with open(Path(path), 'r', encoding='utf-8') as f:
        return json.load(f)


def print_json(data: Any):
    """Write data to stdout as indented JSON."""
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def run_request(args) -> int:
    """
    Execute a create or update command.

    Returns:
        Process exit code
    """
    payload = load_request(args.request)
    fetcher = MockMediaFetcher() if args.offline else HttpMediaFetcher()

    with fetcher, DatabaseManager(args.db) as db:
        db.initialize_database()
        coordinator = RequestCoordinator(db, fetcher=fetcher)

        try:
            if args.command == "create":
                response = coordinator.create(payload)
            else:
                response = coordinator.update(args.id, payload)
        except SSTError as e:
            logging.error(f"Request failed: {e.message}")
            print_json(e.to_dict())
            print(f"Status: {e.status}", file=sys.stderr)
            return 1

    print_json(response.to_wire())
    print(f"Status: {response.status}", file=sys.stderr)

    if response.errors:
        logging.warning(f"{len(response.errors)} reference(s) could not be resolved")
    return 0


def show_object(args) -> int:
    """
    Print a stored post with its meta and terms.

    Returns:
        Process exit code
    """
    with DatabaseManager(args.db) as db:
        db.initialize_database()
        post = db.get(args.id)
        if not post:
            print(f"No post with ID {args.id}", file=sys.stderr)
            return 1

        data = post.model_dump()
        data["meta"] = db.get_all_meta("post", post.id)
        data["terms"] = {
            taxonomy: [term.model_dump() for term in db.get_object_terms(post.id, taxonomy)]
            for taxonomy in db.taxonomies
        }
        data["url"] = db.canonical_url(post.id)
        print_json(data)
    return 0


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="SST - Promise Document Ingest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init                          # Create the content store schema
  python main.py create promise.json           # Create a post and its references
  python main.py update 12 promise.json        # Update post 12
  python main.py --offline create promise.json # Do not download media
  python main.py show 12                       # Print post 12 with meta and terms
  python main.py --config prod.yaml create -   # Read the request from stdin
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to an alternative configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help=f"Path to the DuckDB content store (default: {config.database_filename})"
    )

    parser.add_argument(
        "--offline",
        action="store_true",
        help="Create attachments without downloading files"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="SST 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the content store schema")

    create_parser = subparsers.add_parser("create", help="Create a post from a request document")
    create_parser.add_argument("request", help="Path to the request JSON ('-' for stdin)")

    update_parser = subparsers.add_parser("update", help="Update a post from a request document")
    update_parser.add_argument("id", type=int, help="Local ID of the post to update")
    update_parser.add_argument("request", help="Path to the request JSON ('-' for stdin)")

    show_parser = subparsers.add_parser("show", help="Print a stored post")
    show_parser.add_argument("id", type=int, help="Local ID of the post")

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_arguments()

    if args.config:
        config.config_path = Path(args.config)
        config.reload()

    setup_logging()

    try:
        if args.command == "init":
            with DatabaseManager(args.db) as db:
                db.initialize_database()
            logging.info(f"Content store initialized at {db.db_path}")
            sys.exit(0)
        elif args.command == "show":
            sys.exit(show_object(args))
        else:
            sys.exit(run_request(args))

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(1)

    except (OSError, json.JSONDecodeError) as e:
        logging.error(f"Could not read request: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
