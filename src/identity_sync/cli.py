from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from .config import configure_logging, get_settings
from .context import build_context


async def _reconcile(limit: int) -> int:
    context = build_context(get_settings())
    try:
        report = await context.reconciler.run(limit=limit)
    finally:
        await context.aclose()

    print(f"checked={report.checked} synced={report.synced} failed={len(report.failed)}")
    for external_id in report.failed:
        print(f"  failed: {external_id}")
    return 1 if report.failed else 0


def _serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run(
        "identity_sync.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="identity-sync",
        description="Synchronize identity provider accounts into the local user store.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the webhook HTTP server.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    reconcile = subparsers.add_parser(
        "reconcile",
        help="Retry provider metadata write-back for users created without it.",
    )
    reconcile.add_argument("--limit", type=int, default=100)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().LOG_LEVEL)

    if args.command == "serve":
        return _serve(args.host, args.port, args.reload)
    return asyncio.run(_reconcile(args.limit))


if __name__ == "__main__":
    sys.exit(main())
