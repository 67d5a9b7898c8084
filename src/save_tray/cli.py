"""
Command-line interface for the save tray.

Commands:
- config: Print the effective configuration
- show:   Render the ledger stored in one document file
- serve:  Run a peer's authority endpoint over a directory of document files

Usage:
    save-tray config
    save-tray show data/documents/Message.abc.json
    save-tray serve --peer-id gm --coordinator gm [--documents DIR] [--host H] [--port P]

Environment Variables:
    SAVE_TRAY_HOST, SAVE_TRAY_PORT, SAVE_TRAY_DOCUMENTS, SAVE_TRAY_LOG_LEVEL
    (see save_tray.config for the full list)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from save_tray.config import config, print_config_summary

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
}


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level and format to the root logger."""
    logging.basicConfig(
        level=(level or config.logging.level).upper(),
        format=_LOG_FORMATS.get(config.logging.format, _LOG_FORMATS["detailed"]),
    )


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    print_config_summary()
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """
    Render the ledger stored in one document file.

    Returns:
        0 on success, 1 if the file is missing or unreadable
    """
    from save_tray.ledger.model import Ledger
    from save_tray.session.files import DocumentStoreError, FileDocumentStore
    from save_tray.tray.view import TrayViewer, build_tray_view

    path = Path(args.document)
    store = FileDocumentStore(path.parent)
    document = asyncio.run(store.resolve(path.stem))
    if document is None:
        print(f"Error: No document file at {path}", file=sys.stderr)
        return 1

    namespace = args.namespace or config.channel.namespace
    key = args.key or config.channel.key
    try:
        ledger = Ledger.from_wire(document.get_attachment(namespace, key))
    except DocumentStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    view = build_tray_view(ledger, TrayViewer.for_peer("cli", is_coordinator=True))
    print(f"Document:   {path.stem}")
    threshold = "-" if view.threshold is None else view.threshold
    print(f"Check:      {view.check_kind or '-'}  (threshold {threshold})")
    if view.is_empty:
        print("No participants.")
        return 0

    print("-" * 60)
    for row in view.rows:
        outcome = "" if row.outcome_value is None else str(row.outcome_value)
        print(f"{row.status.value:<8} {row.display_name:<30} {outcome:>6}  {row.entity_ref}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the authority endpoint for one peer.

    The coordinator is fixed for the lifetime of the process; restart with a
    different ``--coordinator`` to model a handoff.
    """
    import uvicorn

    from save_tray.api.server import create_app
    from save_tray.channel.authority import AuthorityHandler
    from save_tray.session.files import FileDocumentStore
    from save_tray.session.memory import PeerDirectory

    documents = Path(args.documents) if args.documents else config.storage.absolute_path
    if not documents.is_dir():
        print(f"Error: Documents directory {documents} does not exist.", file=sys.stderr)
        return 1

    directory = PeerDirectory(coordinator=args.coordinator)
    handler = AuthorityHandler(args.peer_id, directory, FileDocumentStore(documents))
    app = create_app(handler)

    host = args.host or config.server.host
    port = args.port or config.server.port
    print(f"Serving peer '{args.peer_id}' on {host}:{port} (coordinator: {args.coordinator})")
    uvicorn.run(app, host=host, port=port, log_level=config.logging.level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="save-tray",
        description="Coordinator-delegated participant ledger",
    )
    parser.add_argument("--log-level", help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser("config", help="Show the effective configuration")
    config_parser.set_defaults(func=cmd_config)

    show_parser = subparsers.add_parser("show", help="Render the ledger of a document file")
    show_parser.add_argument("document", help="Path to <document_ref>.json")
    show_parser.add_argument("--namespace", help="Attachment namespace")
    show_parser.add_argument("--key", help="Attachment key")
    show_parser.set_defaults(func=cmd_show)

    serve_parser = subparsers.add_parser("serve", help="Run the authority endpoint")
    serve_parser.add_argument("--peer-id", required=True, help="Id of this peer")
    serve_parser.add_argument(
        "--coordinator", default=None, help="Id of the current coordinator (omit for none)"
    )
    serve_parser.add_argument("--documents", help="Directory of document files")
    serve_parser.add_argument("--host", help="Host interface to bind")
    serve_parser.add_argument("--port", type=int, help="Port to listen on")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
