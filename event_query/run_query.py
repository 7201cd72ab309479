"""Command-line utility for querying a file of device events.

Events are read from a JSON file holding either a list of raw events or an
object with a ``data`` list. The query is read from ``--query`` (a JSON file in
the camelCase shape accepted by :meth:`DataEngine.query`) and may be amended
with individual flags::

    python -m event_query.run_query events.json \\
        --start 2024-01-01 --end 2024-01-15 \\
        --type cbg:normalTime,value,units:normalTime \\
        --stats averageGlucose,timeInRange --timezone America/New_York

Each ``--type`` is ``type[:field,field...[:sort_field[,desc]]]``. Results are
written as JSON to stdout or to ``--output`` if provided.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
from importlib import import_module
from pathlib import Path
from typing import Any, Callable, Iterable

from .config import EngineConfig
from .engine import DataEngine


def _load_events(path: Path) -> list[Any]:
    with path.open() as handle:
        payload = json.load(handle)
    if isinstance(payload, dict):
        payload = payload.get("data") or []
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of events in {path}")
    return payload


def _parse_type_arg(value: str) -> dict[str, Any]:
    type_name, _, rest = value.partition(":")
    select, _, sort = rest.partition(":")
    entry: dict[str, Any] = {"type": type_name}
    if select:
        entry["select"] = select
    if sort:
        entry["sort"] = sort
    return entry


def build_query(args: argparse.Namespace) -> dict[str, Any]:
    """Merge the ``--query`` file with command-line overrides."""

    query: dict[str, Any] = {}
    if args.query:
        query.update(json.loads(Path(args.query).read_text()))
    if args.start or args.end:
        if not (args.start and args.end):
            raise SystemExit("--start and --end must be given together")
        query["endpoints"] = [args.start, args.end]
    if args.type:
        query["types"] = [_parse_type_arg(value) for value in args.type]
    if args.stats:
        query["stats"] = args.stats
    if args.active_days:
        query["activeDays"] = [int(day) for day in args.active_days.split(",") if day.strip()]
    if args.timezone:
        query["timePrefs"] = {"timezoneAware": True, "timezoneName": args.timezone}
    if args.bg_units:
        query["bgPrefs"] = {**query.get("bgPrefs", {}), "bgUnits": args.bg_units}
    return query


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query device events by window, weekday and type")
    parser.add_argument("events", type=Path, nargs="?", help="JSON file with raw device events")
    parser.add_argument(
        "--fetcher",
        help="Python callable (module:function) returning raw events, used instead of a file",
    )
    parser.add_argument("--query", type=Path, help="JSON file with query parameters")
    parser.add_argument("--start", help="Window start (ISO timestamp or epoch ms)")
    parser.add_argument("--end", help="Window end, exclusive (ISO timestamp or epoch ms)")
    parser.add_argument("--type", action="append", help="Type selection (may be repeated)")
    parser.add_argument("--stats", help="Comma-separated stat identifiers")
    parser.add_argument("--active-days", help="Comma-separated weekdays, 0=Sunday")
    parser.add_argument("--timezone", help="Display timezone (enables timezone-aware display)")
    parser.add_argument("--bg-units", choices=("mg/dL", "mmol/L"), help="Glucose display units")
    parser.add_argument("--output", type=Path, help="Optional output JSON file")
    parser.add_argument("--indent", type=int, default=None, help="Pretty-print JSON with the given indent")
    parser.add_argument(
        "--log-level",
        default=os.getenv("EVENT_QUERY_LOG_LEVEL", "WARNING"),
        help="Logging level (default: $EVENT_QUERY_LOG_LEVEL or WARNING)",
    )
    return parser.parse_args(argv)


def _resolve_callable(path: str) -> Callable[[], Iterable[Any]]:
    try:
        module_name, func_name = path.rsplit(":", 1)
    except ValueError as exc:
        raise ValueError("Fetcher must be in 'module:function' format") from exc
    module = import_module(module_name)
    func = getattr(module, func_name, None)
    if not callable(func):
        raise TypeError(f"{path!r} is not callable")
    return func


def run(events: Iterable[Any], query: dict[str, Any], *, config: EngineConfig | None = None) -> dict[str, Any]:
    engine = DataEngine(events, config=config or EngineConfig.from_env())
    return engine.query(query).to_dict()


def main(argv: list[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")

    if args.fetcher:
        events = list(_resolve_callable(args.fetcher)())
    elif args.events:
        events = _load_events(args.events)
    else:
        raise SystemExit("Either an events file or --fetcher must be provided")

    results = run(events, build_query(args))
    output_text = json.dumps(results, indent=args.indent)
    if args.output:
        args.output.write_text(output_text)
    else:
        print(output_text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
