"""Operator CLI for the context vector collection.

Boots the same runtime as the API (store verification included) and runs
one operation against it.

Usage:
    python -m services.context_vectors.context_vectors_cli ensure
    python -m services.context_vectors.context_vectors_cli index <context_id> <file_id> notes.txt
    python -m services.context_vectors.context_vectors_cli delete-file <context_id> <file_id>
    python -m services.context_vectors.context_vectors_cli delete-context <context_id>
    python -m services.context_vectors.context_vectors_cli query "How is the rollout planned?" -c <context_id>
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from services.context_vectors.context_vectors_boot import ContextVectorRuntime, boot_context_vectors
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.errors import ConfigurationError
from shared.models.results import OperationResult, OperationStatus


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage context file vectors")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("ensure", help="Create the collection if it is missing and print its configuration")

    index = commands.add_parser("index", help="(Re)index a plain text file")
    index.add_argument("context_id")
    index.add_argument("file_id")
    index.add_argument("path", type=Path)
    index.add_argument("--mime-type", default=None, help="Defaults to a guess from the file name")

    delete_file = commands.add_parser("delete-file", help="Delete the vectors of one file")
    delete_file.add_argument("context_id")
    delete_file.add_argument("file_id")

    delete_context = commands.add_parser("delete-context", help="Delete the vectors of a whole context")
    delete_context.add_argument("context_id")

    query = commands.add_parser("query", help="Query the given contexts")
    query.add_argument("query")
    query.add_argument("--context", "-c", dest="context_ids", action="append", required=True)
    query.add_argument("--limit", type=int, default=None)
    return parser


def _print_result(result: OperationResult) -> int:
    print(f"{result.operation}: {result.status.value}" + (f" ({result.detail})" if result.detail else "") + (f", {result.count} chunks" if result.count else ""))
    return 1 if result.status == OperationStatus.FAILED else 0


async def run_command(args: argparse.Namespace, runtime: ContextVectorRuntime) -> int:
    """Run the parsed command against a booted runtime and return the exit code."""
    service = runtime.service
    if args.command == "ensure":
        spec = await service.collection.describe()
        print(f"{spec.name}: dimension={spec.dimension} distance={spec.distance}")
        return 0
    if args.command == "index":
        text = args.path.read_text(encoding="utf-8", errors="replace")
        mime_type = args.mime_type or mimetypes.guess_type(args.path.name)[0] or "text/plain"
        result = await service.index_file(args.context_id, args.file_id, args.path.name, mime_type, text)
        return _print_result(result)
    if args.command == "delete-file":
        return _print_result(await service.delete_file_vectors(args.context_id, args.file_id))
    if args.command == "delete-context":
        return _print_result(await service.delete_context_vectors(args.context_id))
    if args.command == "query":
        hits = await service.search(args.context_ids, args.query, args.limit)
        if not hits:
            print("(No results)")
        for rank, hit in enumerate(hits, start=1):
            print(f"{rank}. [{hit.score:.3f}] {hit.payload.file_id}#{hit.payload.chunk_index}")
            print(f"   {hit.payload.text[:200]!r}")
        return 0
    raise ValueError(f"Unknown command {args.command!r}")


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    try:
        runtime = await boot_context_vectors(config)
    except ConfigurationError as exc:
        logger.error("Aborting: %s", exc)
        return 2
    try:
        return await run_command(args, runtime)
    finally:
        await runtime.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
