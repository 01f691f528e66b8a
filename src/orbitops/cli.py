"""
Command-line interface for conjunction screening and maneuver planning.

Usage:
    # Screen one object against the catalog for the next 24 h
    orbitops screen 25544
    orbitops screen 25544 --hours 48 --step 60 --threshold 10

    # Plan burns for its high-risk, urgent events
    orbitops plan 25544

    # Inspect stored events
    orbitops risks
    orbitops risks 25544 --high-risk --urgent

    # Refresh catalog and external conjunction feed, then plan for feed objects
    orbitops ingest --no-catalog
    orbitops plan-feed

Configuration comes from ORBITOPS_* environment variables (see
orbitops.config.Settings).
"""
import argparse
import logging
import sys

import requests

from orbitops.config import get_settings
from orbitops.core.events import ConjunctionEvent, PlanStatus
from orbitops.data.keeptrack import KeepTrackClient
from orbitops.errors import CatalogUnavailable, ObjectNotFound, PropagationUnavailable
from orbitops.service import ConjunctionService, PlanOutcome


def _format_event(event: ConjunctionEvent) -> str:
    line = (
        f"  #{event.event_id} NORAD {event.primary_norad_id} x {event.secondary_norad_id} "
        f"({event.secondary_name or '?'}): TCA {event.tca:%Y-%m-%d %H:%M:%S}Z, "
        f"miss {event.miss_distance_km:.3f} km, rel. speed {event.relative_speed_km_s:.2f} km/s"
    )
    if event.probability is not None:
        line += f", Pc {event.probability:.2e}"
    line += f" [{event.provenance.value}]"
    if event.solution is not None and event.solution.requires_maneuver:
        line += f", burn {event.solution.delta_v_mps:.3f} m/s {event.solution.direction.value}"
    elif event.maneuver_status is PlanStatus.NO_SOLUTION:
        line += ", no maneuver possible"
    return line


def _format_outcome(outcome: PlanOutcome) -> str:
    if outcome.status is PlanStatus.PLANNED:
        s = outcome.solution
        return (
            f"  #{outcome.event_id}: {s.direction.value} burn of {s.delta_v_mps:.3f} m/s at "
            f"{s.burn_time:%Y-%m-%d %H:%M:%S}Z -> {s.resulting_perigee_km:.1f} x "
            f"{s.resulting_apogee_km:.1f} km, separation {s.resulting_separation_km:.2f} km"
        )
    if outcome.status is PlanStatus.NOT_REQUIRED:
        return f"  #{outcome.event_id}: separation already safe, no maneuver needed"
    if outcome.status is PlanStatus.NO_SOLUTION:
        return f"  #{outcome.event_id}: risk found, no maneuver possible within the delta-v cap"
    return f"  #{outcome.event_id}: analysis could not run ({outcome.error})"


def _cmd_screen(service: ConjunctionService, args: argparse.Namespace) -> int:
    window = service.settings.screening_window(
        hours=args.hours, step_seconds=args.step, threshold_km=args.threshold,
    )
    count = service.screen_object(args.norad_id, window)
    report = service.last_report
    if count == 0 and report is not None and report.unresolved_ids:
        print(f"NORAD {args.norad_id}: no conjunction among the screened candidates")
    elif count == 0:
        print(f"NORAD {args.norad_id}: no risk found in the next {window.duration_seconds / 3600:.1f} h")
    else:
        print(f"NORAD {args.norad_id}: {count} conjunction(s) below {window.miss_distance_threshold_km} km")
        for event in service.conjunctions.list_events(args.norad_id):
            if window.contains(event.tca):
                print(_format_event(event))
    if report is not None and (report.failed or report.timed_out):
        print(f"  ({report.failed} candidate(s) could not be propagated, {report.timed_out} not screened in time)")
    return 0


def _cmd_plan(service: ConjunctionService, args: argparse.Namespace) -> int:
    outcomes = service.plan_maneuvers(args.norad_id)
    if not outcomes:
        print(f"NORAD {args.norad_id}: no risk found, nothing to plan")
        return 0
    print(f"NORAD {args.norad_id}: {len(outcomes)} actionable event(s)")
    for outcome in outcomes:
        print(_format_outcome(outcome))
    return 0


def _cmd_risks(service: ConjunctionService, args: argparse.Namespace) -> int:
    events = service.query_risks(
        args.norad_id,
        high_risk=True if args.high_risk else None,
        urgent=True if args.urgent else None,
    )
    if not events:
        print("No matching conjunction events")
        return 0
    for event in events:
        print(_format_event(event))
    return 0


def _cmd_ingest(service: ConjunctionService, args: argparse.Namespace) -> int:
    settings = service.settings
    client = KeepTrackClient(base_url=settings.keeptrack_base_url, timeout_s=settings.http_timeout_s)
    try:
        result = service.refresh_external_feed(client, catalog=args.catalog, feed=args.feed)
    finally:
        client.close()
    print(f"Ingested {result.objects} object(s) and {result.events} external event(s)")
    return 0


def _cmd_plan_feed(service: ConjunctionService, args: argparse.Namespace) -> int:
    results = service.plan_all_feed_objects()
    if not any(results.values()):
        print(f"{len(results)} feed object(s) checked: no risk found")
        return 0
    for norad_id, outcomes in sorted(results.items()):
        if not outcomes:
            continue
        print(f"NORAD {norad_id}:")
        for outcome in outcomes:
            print(_format_outcome(outcome))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orbitops",
        description="Conjunction screening and collision-avoidance maneuver planning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--database-url", help="Override ORBITOPS_DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("screen", help="Screen one object against the catalog")
    p.add_argument("norad_id", type=int)
    p.add_argument("--hours", type=float, help="Window length in hours")
    p.add_argument("--step", type=float, help="Sampling step in seconds")
    p.add_argument("--threshold", type=float, help="Miss-distance threshold in km")
    p.set_defaults(handler=_cmd_screen)

    p = sub.add_parser("plan", help="Plan burns for an object's high-risk, urgent events")
    p.add_argument("norad_id", type=int)
    p.set_defaults(handler=_cmd_plan)

    p = sub.add_parser("risks", help="List stored conjunction events")
    p.add_argument("norad_id", type=int, nargs="?")
    p.add_argument("--high-risk", action="store_true", help="Only high-risk events")
    p.add_argument("--urgent", action="store_true", help="Only events within the planning horizon")
    p.set_defaults(handler=_cmd_risks)

    p = sub.add_parser("ingest", help="Refresh catalog and external conjunction feed")
    p.add_argument("--catalog", action=argparse.BooleanOptionalAction, default=True)
    p.add_argument("--feed", action=argparse.BooleanOptionalAction, default=True)
    p.set_defaults(handler=_cmd_ingest)

    p = sub.add_parser("plan-feed", help="Plan burns for every object in the external feed")
    p.set_defaults(handler=_cmd_plan_feed)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = get_settings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})

    try:
        with ConjunctionService.open(settings) as service:
            return args.handler(service, args)
    except (CatalogUnavailable, ObjectNotFound, PropagationUnavailable, requests.RequestException) as e:
        print(f"Error: analysis could not run: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
