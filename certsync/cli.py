"""certsync command line.

Commands:
    certsync list <owner>          List credential objects owned by an address
    certsync reconcile <owner>     Match owned objects against the catalog
    certsync download <address>    Fetch a credential file (cache first)
    certsync upload <file>         Store a file and print its content address
    certsync hide <object_id>      Hide a credential from listings
    certsync unhide <object_id>    Show a hidden credential again
    certsync hidden                List hidden object ids
    certsync unhide-all            Clear the hidden set
    certsync prune-cache           Evict cached blobs by age and/or size

All output is JSON on stdout; errors are JSON on stderr with a non-zero exit.
"""

import asyncio
import json
import mimetypes
import sys
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from certsync.logging_config import configure_logging

EXIT_SUCCESS = 0
EXIT_QUERY_FAILURE = 1
EXIT_STORE_FAILURE = 2
EXIT_INPUT_ERROR = 3

app = typer.Typer(
    name="certsync",
    help="Reconcile ledger credentials and manage their blob-stored files.",
    no_args_is_help=True,
)


def output(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def output_error(code: str, message: str, exit_code: int) -> NoReturn:
    typer.echo(json.dumps({"error": {"code": code, "message": message}}), err=True)
    raise typer.Exit(code=exit_code)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to CERTSYNC_LOG_LEVEL or INFO)",
    ),
    log_file: Optional[str] = typer.Option(
        None,
        "--log-file",
        help="Log file (defaults to CERTSYNC_LOG_FILE)",
    ),
) -> None:
    configure_logging(log_file=log_file, log_level=log_level, stream=sys.stderr)


def _hidden_tracker():
    from certsync.persistence import SqlKeyValueStore, get_database
    from certsync.state import HiddenSetTracker

    return HiddenSetTracker(SqlKeyValueStore(get_database()))


def _blob_cache():
    from certsync.blobs import SqlBlobCache
    from certsync.persistence import get_database

    return SqlBlobCache(get_database())


@app.command("list")
def list_cmd(
    owner: str = typer.Argument(..., help="Owner address"),
) -> None:
    """List credential objects owned by OWNER."""
    from certsync.ledger import LedgerObjectLocator, LedgerQueryError

    locator = LedgerObjectLocator()
    try:
        result = asyncio.run(locator.locate(owner))
    except LedgerQueryError as e:
        output_error(e.code, e.message, EXIT_QUERY_FAILURE)

    output(
        {
            "owner": owner,
            "objects": [asdict(o) for o in result.objects],
            "failures": [asdict(f) for f in result.failures],
        }
    )


@app.command("reconcile")
def reconcile_cmd(
    owner: str = typer.Argument(..., help="Owner address"),
    catalog: Optional[Path] = typer.Option(
        None,
        "--catalog",
        "-c",
        help="JSON catalog file (defaults to the built-in catalog)",
    ),
    no_transactions: bool = typer.Option(
        False,
        "--no-transactions",
        help="Skip originating-transaction lookups",
    ),
    include_hidden: bool = typer.Option(
        False,
        "--include-hidden",
        help="Also show records the user has hidden",
    ),
) -> None:
    """Match OWNER's ledger objects against the credential catalog.

    Examples:
        certsync reconcile 0xabc...
        certsync reconcile 0xabc... --catalog catalog.json --no-transactions
    """
    from certsync.ledger import LedgerObjectLocator
    from certsync.reconcile import DEFAULT_CATALOG, ReconciliationSession, load_catalog

    if catalog is not None:
        try:
            descriptors = load_catalog(catalog)
        except (OSError, ValueError) as e:
            output_error("CATALOG_INVALID", str(e), EXIT_INPUT_ERROR)
    else:
        descriptors = DEFAULT_CATALOG

    session = ReconciliationSession(
        LedgerObjectLocator(),
        descriptors=descriptors,
        hidden=None if include_hidden else _hidden_tracker(),
        resolve_transactions=not no_transactions,
    )
    result = asyncio.run(session.reconcile(owner))
    if not result.ok:
        output_error("LEDGER_QUERY_FAILED", result.query_error, EXIT_QUERY_FAILURE)

    records = session.visible(result.records)
    output(
        {
            "owner": owner,
            "records": [
                {**asdict(r), "tier": r.tier.name.lower(), "title": session.descriptor(r.descriptor_id).title}
                for r in records
            ],
            "hidden": len(result.records) - len(records),
            "unmatched": result.unmatched,
            "failures": [asdict(f) for f in result.failures],
        }
    )


@app.command("download")
def download_cmd(
    address: str = typer.Argument(..., help="Blob content address"),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Output file or directory (defaults to the current directory)",
    ),
    title: Optional[str] = typer.Option(
        None,
        "--title",
        help="Credential title used to name the file",
    ),
) -> None:
    """Fetch a credential file, serving it from the local cache when present."""
    from certsync.blobs import BlobResolver, BlobStoreClient, BlobStoreError, suggested_filename

    resolver = BlobResolver(BlobStoreClient(), _blob_cache())
    try:
        blob = asyncio.run(resolver.fetch(address))
    except BlobStoreError as e:
        output_error(e.code, e.message, EXIT_STORE_FAILURE)

    filename = suggested_filename(title or address, blob.content_type)
    if out is None:
        target = Path(filename)
    elif out.is_dir():
        target = out / filename
    else:
        target = out
    target.write_bytes(blob.data)

    output(
        {
            "content_address": address,
            "content_type": blob.content_type,
            "size": len(blob.data),
            "from_cache": blob.from_cache,
            "path": str(target),
        }
    )


@app.command("upload")
def upload_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to store"),
    content_type: Optional[str] = typer.Option(
        None,
        "--content-type",
        help="Media type sent with the upload (guessed from the name otherwise)",
    ),
) -> None:
    """Store FILE in the blob store and print its content address."""
    from certsync.blobs import BlobStoreClient, BlobStoreError

    data = file.read_bytes()
    media_type = content_type or mimetypes.guess_type(file.name)[0]
    try:
        address = asyncio.run(BlobStoreClient().upload(data, media_type))
    except BlobStoreError as e:
        output_error(e.code, e.message, EXIT_STORE_FAILURE)

    output({"content_address": address, "size": len(data), "file": str(file)})


@app.command("hide")
def hide_cmd(object_id: str = typer.Argument(..., help="Ledger object id")) -> None:
    """Hide a credential from listings (local only)."""
    tracker = _hidden_tracker()
    tracker.hide(object_id)
    output({"hidden": tracker.sorted_ids()})


@app.command("unhide")
def unhide_cmd(object_id: str = typer.Argument(..., help="Ledger object id")) -> None:
    """Show a previously hidden credential again."""
    tracker = _hidden_tracker()
    tracker.unhide(object_id)
    output({"hidden": tracker.sorted_ids()})


@app.command("hidden")
def hidden_cmd() -> None:
    """List hidden object ids."""
    output({"hidden": _hidden_tracker().sorted_ids()})


@app.command("unhide-all")
def unhide_all_cmd() -> None:
    """Clear the hidden set."""
    tracker = _hidden_tracker()
    cleared = len(tracker)
    tracker.clear_all()
    output({"cleared": cleared, "hidden": []})


@app.command("prune-cache")
def prune_cache_cmd(
    older_than_days: Optional[float] = typer.Option(
        None,
        "--older-than-days",
        help="Delete entries saved more than this many days ago",
    ),
    max_bytes: Optional[int] = typer.Option(
        None,
        "--max-bytes",
        help="Delete oldest entries until the cache fits this size",
    ),
) -> None:
    """Evict cached blobs by age and/or total size."""
    if older_than_days is None and max_bytes is None:
        output_error("PRUNE_BOUND_REQUIRED", "Give --older-than-days and/or --max-bytes", EXIT_INPUT_ERROR)

    older_than = None
    if older_than_days is not None:
        older_than = datetime.now(timezone.utc) - timedelta(days=older_than_days)
    try:
        report = asyncio.run(_blob_cache().prune(older_than=older_than, max_bytes=max_bytes))
    except ValueError as e:
        output_error("PRUNE_INVALID", str(e), EXIT_INPUT_ERROR)

    output(asdict(report))


if __name__ == "__main__":
    app()
