from __future__ import annotations

import argparse
import concurrent.futures
import json
import logging
import sys
from pathlib import Path
from typing import Any

import coloredlogs

from . import __version__
from .checker import check, parse_host_and_port
from .models import CheckResult, CheckStatus
from .settings import Settings
from .summary import CheckSummary, detect_changes
from .trust import TrustStore

logger = logging.getLogger("certcheck")

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"

_FAIL_THRESHOLDS = {
    "warning": (CheckStatus.WARNING, CheckStatus.CRITICAL),
    "critical": (CheckStatus.CRITICAL,),
}


def _write_output(out_path: str | None, payload: Any) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if out_path and out_path != "-":
        Path(out_path).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.WARNING)
    if sys.stderr.isatty():
        coloredlogs.install(level=level, logger=logger, fmt=LOG_FORMAT, stream=sys.stderr)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logger.setLevel(level)


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="certcheck",
        description="Check TLS certificates the way a mobile client's trust store sees them.",
    )
    p.add_argument("targets", nargs="*", help="Hosts to check: example.com, example.com:8443, https://example.com/path")
    p.add_argument("--port", type=int, help="Default port when a target has none (default: 443)")
    p.add_argument("--connect-timeout", type=float, help="Connect timeout seconds (default: 10)")
    p.add_argument("--read-timeout", type=float, help="Read timeout seconds (default: 10)")
    p.add_argument("--out", "-o", help="Write JSON output to file (default: stdout)")
    p.add_argument("--workers", type=int, default=1, help="Targets checked concurrently (default: 1)")
    p.add_argument("--baseline", help="Previous JSON report to compare against")
    p.add_argument(
        "--fail-on",
        choices=["never", "warning", "critical"],
        default="never",
        help="Exit with status 2 when a target reaches this status (default: never)",
    )
    p.add_argument(
        "--log-level",
        "-l",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)",
    )
    p.add_argument("--version", action="store_true", help="Print version and exit")
    return p.parse_args(argv)


def _load_baseline(path: str) -> dict[str, CheckSummary]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    out: dict[str, CheckSummary] = {}
    for entry in data.get("results", []):
        summary = entry.get("summary")
        if not summary:
            continue
        s = CheckSummary.from_dict(summary)
        out[f"{s.hostname}:{s.port}"] = s
    return out


def _run_checks(targets: list[str], settings: Settings, workers: int) -> list[CheckResult]:
    store = TrustStore.system()
    if workers <= 1 or len(targets) <= 1:
        return [check(t, settings=settings, trust_store=store) for t in targets]
    # independent checks; map() keeps input order
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        return list(ex.map(lambda t: check(t, settings=settings, trust_store=store), targets))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.version:
        print(__version__)
        return 0

    if not args.targets:
        print("Error: at least one target is required", file=sys.stderr)
        return 1

    _setup_logging(args.log_level)

    settings = Settings.from_env().with_overrides(
        default_port=args.port,
        connect_timeout=args.connect_timeout,
        read_timeout=args.read_timeout,
    )

    baseline: dict[str, CheckSummary] = {}
    if args.baseline:
        try:
            baseline = _load_baseline(args.baseline)
        except (OSError, ValueError, KeyError) as e:
            print(f"Error: cannot read baseline {args.baseline}: {e}", file=sys.stderr)
            return 1

    results = _run_checks(args.targets, settings, args.workers)

    entries = []
    for target, result in zip(args.targets, results):
        summary = CheckSummary.from_result(result)
        entry: dict[str, Any] = {
            "target": target,
            "result": result.to_dict(),
            "summary": summary.to_dict(),
        }
        host, port = parse_host_and_port(target, settings.default_port)
        previous = baseline.get(f"{host}:{port}")
        if previous is not None:
            changes = detect_changes(previous, summary)
            entry["changes"] = changes.to_dict() if changes else None
            if changes and changes.degraded:
                logger.warning("%s degraded: %s", host, "; ".join(changes.changes))
        entries.append(entry)

    payload = {
        "version": __version__,
        "results": entries,
    }
    _write_output(args.out, payload)

    if any(r.error is not None for r in results):
        return 3
    threshold = _FAIL_THRESHOLDS.get(args.fail_on, ())
    if any(r.overall_status in threshold for r in results):
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
