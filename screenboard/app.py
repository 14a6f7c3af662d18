import argparse
import json
from pathlib import Path
from typing import Any, Dict, List

from . import __version__
from .config import Settings
from .database import init_database
from .env import load_env
from .errors import QueryError, ReconciliationError
from .filters import FilterCriteria, outcome_category, score_band
from .logger import get_logger
from .models import CanonicalScreeningRecord, Collection
from .normalize import FIELD_MAPS, TITLED, detect_key_form, normalize_candidate, normalize_record
from .pipeline import PipelineConfig, ScreeningView, run_pipeline
from .query_service import build_query_service
from .sorting import SortDirection, sort_by_date
from .storage import save_snapshot


def _service(args: argparse.Namespace, settings: Settings):
    snapshot = Path(args.snapshot) if getattr(args, "snapshot", None) else None
    if snapshot is not None and not snapshot.exists():
        raise SystemExit(f"Snapshot file not found: {snapshot}")
    try:
        return build_query_service(settings, snapshot_path=snapshot, db_url=getattr(args, "db", None))
    except ValueError as e:
        raise SystemExit(str(e))


def _config(args: argparse.Namespace, settings: Settings) -> PipelineConfig:
    if args.min_score is not None and args.max_score is not None and args.min_score > args.max_score:
        raise SystemExit("--min-score must not exceed --max-score")
    filters = FilterCriteria(
        call_status=args.call_status,
        role_code=args.role_code,
        screening_outcome=args.outcome,
        min_score=args.min_score,
        max_score=args.max_score,
    )
    return PipelineConfig(
        include_waiting=settings.include_waiting if args.include_waiting is None else args.include_waiting,
        filters=filters,
        sort_direction=SortDirection(args.sort),
    )


def _run(args: argparse.Namespace, settings: Settings) -> ScreeningView:
    service = _service(args, settings)
    try:
        return run_pipeline(service, _config(args, settings))
    except ReconciliationError as e:
        raise SystemExit(f"Error: {e}")


def _fmt(value) -> str:
    return value if value else "—"


def print_record(record: CanonicalScreeningRecord) -> None:
    flag = " [waiting]" if record.is_waiting else ""
    print(f"ID: {record.application_id}{flag}")
    print(f"  Candidate: {_fmt(record.candidate_name)}")
    print(f"  Job: {_fmt(record.job_title)} ({_fmt(record.role_code)})")
    print(f"  Call Status: {_fmt(record.call_status)}")
    band = score_band(record.final_score)
    print(f"  Final Score: {_fmt(record.final_score)}" + (f" [{band}]" if band else ""))
    category = outcome_category(record.screening_outcome)
    print(f"  Outcome: {_fmt(record.screening_outcome)}" + (f" [{category}]" if category else ""))
    print(f"  Created: {_fmt(record.date_created)}")


def cmd_screenings(args: argparse.Namespace, settings: Settings) -> None:
    view = _run(args, settings)
    if args.json:
        print(json.dumps(view.to_dict(), indent=2, ensure_ascii=False))
    elif not view.records:
        print("No screening records match.")
    else:
        print(f"Showing {len(view.records)} of {view.total} screening records:\n")
        for record in view.records:
            print_record(record)
            print()
    get_logger().log_metrics_summary()


def cmd_facets(args: argparse.Namespace, settings: Settings) -> None:
    view = _run(args, settings)
    facets = view.facets.to_dict()
    if args.json:
        print(json.dumps(facets, indent=2, ensure_ascii=False))
    else:
        for name, values in facets.items():
            print(f"{name}: {', '.join(values) if values else '—'}")
    get_logger().log_metrics_summary()


def cmd_applications(args: argparse.Namespace, settings: Settings) -> None:
    service = _service(args, settings)
    try:
        rows = service.fetch_all(Collection.CANDIDATE_MASTER)
    except QueryError as e:
        raise SystemExit(f"Error: {e}")

    candidates = [c for c in (normalize_candidate(r) for r in rows) if c is not None]
    if args.role_code:
        candidates = [c for c in candidates if c.role_code == args.role_code]
    ordered = sort_by_date(candidates, SortDirection.NEWEST, date_of=lambda c: c.created_at or c.date_created)

    if not ordered:
        print("No applications found.")
        return
    print(f"Found {len(ordered)} applications:\n")
    for c in ordered:
        print(f"ID: {c.application_id}")
        print(f"  Candidate: {_fmt(c.candidate_name)} <{_fmt(c.candidate_email)}>")
        print(f"  Job Applied: {_fmt(c.job_applied)} ({_fmt(c.role_code)})")
        print(f"  Notice Period: {_fmt(c.notice_period)}")
        print(f"  Resume: {_fmt(c.resume_link)}")
        print()


def cmd_validate(args: argparse.Namespace, settings: Settings) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Input is not valid JSON: {e}")
    if not isinstance(raw, dict):
        raise SystemExit("Input must be a single JSON object (one raw row)")

    collection = Collection(args.collection)
    form = detect_key_form(raw, collection)
    position = 0 if form == TITLED else 1
    known = {keys[position] for keys in FIELD_MAPS[collection].values()}
    unknown = sorted(k for k in raw if k not in known)
    values = normalize_record(raw, collection)

    print(f"Key form: {form}")
    if unknown:
        print("Unrecognized keys (ignored):")
        for key in unknown:
            print(f" - {key}")
    if values["application_id"] is None:
        print("Unusable: missing application id")
        raise SystemExit(2)
    print(f"Usable: application {values['application_id']}")


def cmd_snapshot(args: argparse.Namespace, settings: Settings) -> None:
    service = _service(args, settings)
    snapshot: Dict[Collection, List[Dict[str, Any]]] = {}
    try:
        for collection in Collection:
            snapshot[collection] = service.fetch_all(collection)
    except QueryError as e:
        raise SystemExit(f"Error: {e}")
    output = Path(args.output)
    save_snapshot(output, snapshot)
    counts = ", ".join(f"{c.value}={len(rows)}" for c, rows in snapshot.items())
    print(f"Saved snapshot to {output} ({counts})")


def cmd_init_db(args: argparse.Namespace, settings: Settings) -> None:
    db_path = Path(args.path)
    init_database(db_path)
    print(f"Initialized {db_path}")


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--snapshot", help="Read from a JSON snapshot file instead of the store")
    parser.add_argument("--db", help="Read from a SQL database URL (e.g. sqlite:///data/store.db)")


def _add_run_args(parser: argparse.ArgumentParser) -> None:
    _add_source_args(parser)
    parser.add_argument("--include-waiting", action=argparse.BooleanOptionalAction, default=None,
                        help="Include applications still waiting in the queue (env: SCREENBOARD_INCLUDE_WAITING)")
    parser.add_argument("--call-status", help="Only records with this call status")
    parser.add_argument("--role-code", help="Only records with this role code")
    parser.add_argument("--outcome", help="Only records with this screening outcome")
    parser.add_argument("--min-score", type=float, help="Minimum final score (0-100)")
    parser.add_argument("--max-score", type=float, help="Maximum final score (0-100)")
    parser.add_argument("--sort", choices=[d.value for d in SortDirection], default=SortDirection.NEWEST.value,
                        help="new = newest first (default), old = oldest first")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")


def main():
    # Load .env if present (SCREENBOARD_STORE_URL, SCREENBOARD_API_KEY, etc.)
    load_env()
    settings = Settings.from_env()
    get_logger().set_level(settings.log_level)

    parser = argparse.ArgumentParser(prog="screenboard", description="Screening board over the recruitment pipeline")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    scr = subparsers.add_parser("screenings", help="Show the reconciled screening list")
    _add_run_args(scr)
    scr.set_defaults(func=cmd_screenings)

    fac = subparsers.add_parser("facets", help="Show filter choices (call status, role code, outcome)")
    _add_run_args(fac)
    fac.set_defaults(func=cmd_facets)

    apps = subparsers.add_parser("applications", help="List candidate applications, newest first")
    _add_source_args(apps)
    apps.add_argument("--role-code", help="Only applications for this role code")
    apps.set_defaults(func=cmd_applications)

    val = subparsers.add_parser("validate", help="Check a raw row JSON: key form and usability")
    val.add_argument("--input", required=True, help="Path to a JSON file holding one raw row")
    val.add_argument("--collection", choices=[c.value for c in Collection], default=Collection.TRACKER.value,
                     help="Collection the row belongs to (default: tracker)")
    val.set_defaults(func=cmd_validate)

    snap = subparsers.add_parser("snapshot", help="Save all three collections to a JSON snapshot")
    _add_source_args(snap)
    snap.add_argument("--output", default="data/snapshot.json", help="Snapshot path (default: data/snapshot.json)")
    snap.set_defaults(func=cmd_snapshot)

    idb = subparsers.add_parser("init-db", help="Create a local SQLite mirror of the store tables")
    idb.add_argument("--path", default="data/screenboard.db", help="SQLite file (default: data/screenboard.db)")
    idb.set_defaults(func=cmd_init_db)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args, settings)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
