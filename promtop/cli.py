"""Command-line entry point: run one aggregation pass, or read back stored rows.

Usage:
    promtop                                  # all windowed aggregations, printed
    promtop run --range 1h --output csv      # CSV to stdout
    promtop run --query-type instant --output sqlite --db-path metrics.db
    promtop history --metric container_memory_usage_bytes --limit 20
"""

import argparse
import asyncio
import logging
import sqlite3
import sys
from importlib.metadata import PackageNotFoundError, version

from pydantic import ValidationError

from promtop.config import Settings, StoreSettings, get_settings, get_store_settings
from promtop.output.store import format_stored_row, get_connection, get_records, init_schema, save_records
from promtop.output.table import format_table, table_to_csv
from promtop.prometheus import HttpPrometheusAPI
from promtop.top.errors import TopError
from promtop.top.models import PodMetricTable
from promtop.top.runner import QueryConfig, top

logger = logging.getLogger(__name__)

COMMANDS = ("run", "history")
OUTPUT_FORMATS = ("stdout", "csv", "sqlite")


def _build_version(settings: StoreSettings) -> str:
    if settings.build_version:
        return settings.build_version
    try:
        return version("promtop")
    except PackageNotFoundError:
        return ""


def _load_settings(args: argparse.Namespace) -> Settings:
    """Environment / .env settings, with --prometheus-url taking precedence."""
    if getattr(args, "prometheus_url", None):
        return Settings(prometheus_url=args.prometheus_url)
    return get_settings()


async def _collect(settings: Settings, args: argparse.Namespace) -> PodMetricTable:
    logger.info("Initializing connection for host: %s", settings.prometheus_url)
    async with HttpPrometheusAPI.from_settings(settings) as api:
        cfg = QueryConfig(
            api=api,
            query_type=args.query_type if args.query_type is not None else settings.query_type,
            range=args.range or settings.query_range,
            timeout=args.timeout if args.timeout is not None else settings.run_timeout_seconds,
        )
        return await top(cfg)


def _write_sqlite(table: PodMetricTable, db_path: str, build: str) -> int:
    conn = get_connection(db_path)
    try:
        init_schema(conn)
        return save_records(conn, table, build=build)
    finally:
        conn.close()


def run_command(args: argparse.Namespace) -> int:
    """Execute one aggregation pass and emit it in the requested format."""
    try:
        settings = _load_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        print("Set PROMTOP_PROMETHEUS_URL or pass --prometheus-url.", file=sys.stderr)
        return 1

    try:
        table = asyncio.run(_collect(settings, args))
    except (TopError, TimeoutError) as e:
        print(f"Failed to collect metrics: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        # Unreadable token file or CA bundle
        print(f"Failed to initialize Prometheus client: {e}", file=sys.stderr)
        return 1

    if args.output == "csv":
        sys.stdout.write(table_to_csv(table))
    elif args.output == "sqlite":
        db_path = args.db_path or settings.db_path
        try:
            rows = _write_sqlite(table, db_path, _build_version(settings))
        except (sqlite3.Error, ValueError) as e:
            print(f"Failed to send to db: {e}", file=sys.stderr)
            return 1
        print(f"Inserted {rows} rows into {db_path}")
    else:
        print(format_table(table))
    return 0


def history_command(args: argparse.Namespace) -> int:
    """Print rows previously written by ``run --output sqlite``."""
    try:
        db_path = args.db_path or get_store_settings().db_path
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        conn = get_connection(db_path)
        try:
            init_schema(conn)
            rows = get_records(conn, metric=args.metric, limit=args.limit)
        finally:
            conn.close()
    except (sqlite3.Error, ValueError) as e:
        print(f"Failed to read from db: {e}", file=sys.stderr)
        return 1

    print(f"Got {len(rows)} rows")
    for row in rows:
        print(f"Row --- {format_stored_row(row)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promtop",
        description="Collate CPU and memory aggregations per pod from Prometheus",
    )
    verbose_help = "-v for INFO, -vv for DEBUG logging"
    parser.add_argument("-v", "--verbose", action="count", default=0, help=verbose_help)
    # Suppressed default so a subcommand never resets a count given before it
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="count", default=argparse.SUPPRESS, help=verbose_help)
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", parents=[common], help="Run one aggregation pass (default)")
    run.add_argument(
        "--range",
        type=str,
        default=None,
        help="Prometheus duration for windowed queries, e.g. 10m, 1h (default: 10m)",
    )
    run.add_argument(
        "--query-type",
        type=str,
        default=None,
        help="quantile (q), average (a), instant (i); anything else runs quantile/avg/max/min",
    )
    run.add_argument("--output", choices=OUTPUT_FORMATS, default="stdout", help="Output format")
    run.add_argument("--db-path", type=str, default=None, help="SQLite file for --output sqlite")
    run.add_argument("--timeout", type=float, default=None, help="Abort the run after this many seconds")
    run.add_argument("--prometheus-url", type=str, default=None, help="Prometheus base URL")
    run.set_defaults(func=run_command)

    history = subparsers.add_parser("history", parents=[common], help="Show rows stored by previous runs")
    history.add_argument("--metric", type=str, default=None, help="Only rows for this metric")
    history.add_argument("--limit", type=int, default=100, help="Maximum rows to show")
    history.add_argument("--db-path", type=str, default=None, help="SQLite file to read")
    history.set_defaults(func=history_command)

    return parser


def _with_default_command(argv: list[str]) -> list[str]:
    """Prepend ``run`` unless the first non-option token already names a command."""
    if argv[:1] in (["-h"], ["--help"]):
        return argv
    first_positional = next((arg for arg in argv if not arg.startswith("-")), None)
    if first_positional in COMMANDS:
        return argv
    return ["run", *argv]


def main(argv: list[str] | None = None) -> int:
    """Parse args and dispatch. Without a subcommand, ``run`` is assumed."""
    argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(_with_default_command(argv))

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
