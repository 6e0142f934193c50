import argparse
import json

from .env import load_env

from . import __version__
from .client import MetricsClient
from .config import Settings
from .engine import compute_ranking
from .errors import UpstreamError
from .history import DEFAULT_RANGE, RANGES, load_change_history
from .logger import get_logger


def _settings(args: argparse.Namespace) -> Settings:
    try:
        return Settings.from_env().with_overrides(
            base_url=getattr(args, "base_url", None),
            cap=getattr(args, "cap", None),
            concurrency=getattr(args, "concurrency", None),
        )
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")


def _client(settings: Settings) -> MetricsClient:
    return MetricsClient(base_url=settings.base_url, timeout=settings.timeout)


def _print_ranking(result) -> None:
    if result.degraded:
        print(f"[warn] {result.reason}")
    if result.cancelled:
        print(f"[warn] Run cancelled; showing the {len(result)} agencies processed so far.")
    if not len(result):
        print("No agencies returned.")
        return

    print(f"{'#':>3}  {'Agency':<50} {'Word Count':>12} {'Change Count':>13} {'Total':>12}")
    for idx, record in enumerate(result, start=1):
        marker = " *" if record.degraded and not result.degraded else ""
        print(
            f"{idx:>3}  {record.display_name[:50]:<50} {record.word_count:>12,} "
            f"{record.change_count:>13,} {record.score:>12,}{marker}"
        )
    if not result.degraded and any(r.degraded for r in result):
        print("* one or more metrics unavailable, counted as 0")


def cmd_rank(args: argparse.Namespace) -> None:
    settings = _settings(args)
    logger = get_logger(level=settings.log_level)
    result = compute_ranking(settings=settings)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_ranking(result)

    if args.metrics:
        logger.log_metrics_summary()


def cmd_agencies(args: argparse.Namespace) -> None:
    settings = _settings(args)
    get_logger(level=settings.log_level)
    with _client(settings) as client:
        try:
            agencies = client.list_agencies()
        except UpstreamError as e:
            raise SystemExit(f"Could not list agencies: {e}")

    if args.limit is not None:
        agencies = agencies[:args.limit]
    if not agencies:
        print("No agencies returned.")
        return
    print(f"Found {len(agencies)} agencies:\n")
    for agency in agencies:
        print(f"{agency.slug:<45} {agency.label}")


def cmd_wordcount(args: argparse.Namespace) -> None:
    settings = _settings(args)
    get_logger(level=settings.log_level)
    with _client(settings) as client:
        try:
            count = client.fetch_word_count(args.agency)
        except UpstreamError as e:
            raise SystemExit(f"Could not fetch word count for {args.agency}: {e}")

    print(f"Word count for {args.agency}: {count:,}")


def cmd_changes(args: argparse.Namespace) -> None:
    if not args.agency and not args.query:
        raise SystemExit("Provide --agency, --query, or both")
    settings = _settings(args)
    get_logger(level=settings.log_level)
    with _client(settings) as client:
        history = load_change_history(client, args.agency, args.range, query=args.query)

    if history.degraded:
        print("[warn] Change data unavailable. Showing sample data.")
    if not history.points:
        print("No change data found for this period.")
        return
    print(f"Changes for {history.subject} ({history.range_name}):")
    for point in history.points:
        print(f"  {point.date}  {point.count:>8,}")
    print(f"Total: {history.total:,}")


def main(argv=None):
    # Load .env if present (AGENCYRANK_BASE_URL, AGENCYRANK_CAP, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="agencyrank", description="Rank eCFR agencies by regulatory volume and churn")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    rank = subparsers.add_parser("rank", help="Compute the bureaucracy ranking")
    rank.add_argument("--cap", type=int, help="Maximum agencies to rank (default: 50)")
    rank.add_argument("--concurrency", type=int, help="Agencies fetched concurrently per chunk (default: 5)")
    rank.add_argument("--base-url", help="API base URL (default: https://www.ecfr.gov)")
    rank.add_argument("--json", action="store_true", help="Print the result as JSON")
    rank.add_argument("--metrics", action="store_true", help="Log fetch metrics after the run")
    rank.set_defaults(func=cmd_rank)

    ags = subparsers.add_parser("agencies", help="List agencies from the upstream")
    ags.add_argument("--limit", type=int, help="Optional limit on number of agencies shown")
    ags.add_argument("--base-url", help="API base URL")
    ags.set_defaults(func=cmd_agencies)

    wc = subparsers.add_parser("wordcount", help="Show one agency's word count")
    wc.add_argument("--agency", required=True, help="Agency slug (see 'agencies')")
    wc.add_argument("--base-url", help="API base URL")
    wc.set_defaults(func=cmd_wordcount)

    chg = subparsers.add_parser("changes", help="Show daily change counts for an agency or search term")
    chg.add_argument("--agency", help="Agency slug (see 'agencies')")
    chg.add_argument("--query", help="Search term; without --agency, counts across all agencies")
    chg.add_argument("--range", default=DEFAULT_RANGE, choices=RANGES, help=f"Time range (default: {DEFAULT_RANGE})")
    chg.add_argument("--base-url", help="API base URL")
    chg.set_defaults(func=cmd_changes)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
