"""
Job Autopilot CLI - Command line interface for the job discovery and application pipeline.

Usage:
    job-autopilot [command] [options]

Commands:
    worker      Run the queue workers (scraping, applications, notifications)
    scrape      Scrape job boards now, or enqueue a scrape
    status      Show queue counts, metrics and health
    match       Rank stored postings for a user
    apply       Queue an application for a stored posting
    track       View and update a user's application queue
    reorder     Reorder a user's application queue
    serve       Run the HTTP API
    config      Manage configuration

Examples:
    job-autopilot scrape --query "Software Engineer" --location "Remote"
    job-autopilot match --user alice --remote
    job-autopilot apply --user alice --posting-id 12
    job-autopilot worker --once
"""

import argparse
import json
import logging
import sys
import time

from job_autopilot.core.models import ApplicationStatus
from job_autopilot.integrations.pipeline import DEFAULT_BOARDS
from job_autopilot.runtime import Runtime, build_runtime
from job_autopilot.services.job_search import JobSearchFilters
from job_autopilot.taskqueue.tasks import (
    enqueue_application_submission,
    enqueue_scrape,
    initialize_queues,
)
from job_autopilot.utils import Config


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Job Autopilot - Automated job discovery, matching and application pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--db", help="Database path (overrides database.path)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Worker command
    worker_parser = subparsers.add_parser("worker", help="Run queue workers")
    worker_parser.add_argument("--once", action="store_true", help="Process ready jobs and exit")
    worker_parser.add_argument("--no-schedule", action="store_true", help="Do not register default scrapes")

    # Scrape command
    scrape_parser = subparsers.add_parser("scrape", help="Scrape job boards")
    scrape_parser.add_argument("--query", "-q", required=True, help="Search keywords")
    scrape_parser.add_argument("--location", "-l", help="Location filter")
    scrape_parser.add_argument("--boards", help="Comma-separated boards (default: all)")
    scrape_parser.add_argument("--max-results", "-n", type=int, help="Per-board result cap")
    scrape_parser.add_argument("--user", "-u", help="Rank the refreshed postings for this user")
    scrape_parser.add_argument("--enqueue", action="store_true", help="Queue the scrape instead of running it")
    scrape_parser.add_argument("--output", "-o", help="Write scraped postings to a JSON file")

    # Status command
    subparsers.add_parser("status", help="Show queue status")

    # Match command
    match_parser = subparsers.add_parser("match", help="Rank stored postings for a user")
    match_parser.add_argument("--user", "-u", required=True, help="User id (profile name)")
    match_parser.add_argument("--query", "-q", help="Filter by keywords")
    match_parser.add_argument("--location", "-l", help="Filter by location")
    match_parser.add_argument("--remote", action="store_true", help="Remote postings only")
    match_parser.add_argument("--min-salary", type=int, help="Minimum salary")
    match_parser.add_argument("--threshold", type=float, help="Pass threshold (0-1)")
    match_parser.add_argument("--top", "-t", type=int, default=10, help="Show top N matches")

    # Apply command
    apply_parser = subparsers.add_parser("apply", help="Queue an application")
    apply_parser.add_argument("--user", "-u", required=True, help="User id")
    apply_parser.add_argument("--posting-id", "-p", type=int, required=True, help="Stored posting id")
    apply_parser.add_argument("--priority", type=int, default=0, help="Queue priority")
    apply_parser.add_argument("--no-submit", action="store_true", help="Queue without submitting")

    # Track command
    track_parser = subparsers.add_parser("track", help="View and update applications")
    track_parser.add_argument("--user", "-u", required=True, help="User id")
    track_parser.add_argument("--show", help="Application id to show with full history")
    track_parser.add_argument("--update", help="Application id to update")
    track_parser.add_argument("--new-status", choices=[s.value for s in ApplicationStatus], help="New status")
    track_parser.add_argument("--note", help="Add a note to --update / --show application")
    track_parser.add_argument("--stats", action="store_true", help="Show statistics")

    # Reorder command
    reorder_parser = subparsers.add_parser("reorder", help="Reorder the application queue")
    reorder_parser.add_argument("--user", "-u", required=True, help="User id")
    reorder_parser.add_argument("ids", nargs="+", help="Application ids, highest priority first")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")

    # Config command
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("--show", action="store_true", help="Show current config")
    config_parser.add_argument("--set", nargs=2, metavar=("KEY", "VALUE"), help="Set a config value")
    config_parser.add_argument("--set-secret", nargs=2, metavar=("NAME", "VALUE"), help="Set a secret")
    config_parser.add_argument("--init", action="store_true", help="Initialize default config")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "worker": cmd_worker,
        "scrape": cmd_scrape,
        "status": cmd_status,
        "match": cmd_match,
        "apply": cmd_apply,
        "track": cmd_track,
        "reorder": cmd_reorder,
        "serve": cmd_serve,
    }

    try:
        config = Config(args.config)

        if args.command == "config":
            cmd_config(args, config)
            return

        runtime = build_runtime(config, args.db)
        try:
            commands[args.command](args, runtime)
        finally:
            runtime.close()

    except KeyboardInterrupt:
        print("\n\nOperation cancelled.")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


def cmd_worker(args, runtime: Runtime):
    """Execute worker command."""
    initialize_queues(runtime, schedule_defaults=not args.no_schedule)
    manager = runtime.queues

    if args.once:
        processed = manager.drain()
        for name, count in processed.items():
            print(f"   {name}: processed {count} jobs")
        return

    manager.start_workers()
    print("👷 Workers running. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping workers...")


def cmd_scrape(args, runtime: Runtime):
    """Execute scrape command."""
    boards = tuple(b.strip() for b in args.boards.split(",")) if args.boards else tuple(
        runtime.config.get("scraping.boards", DEFAULT_BOARDS)
    )
    max_results = args.max_results or runtime.config.get("scraping.max_results", 40)

    if args.enqueue:
        initialize_queues(runtime)
        payload = {"query": args.query, "location": args.location, "boards": list(boards), "max_results": max_results}
        if args.user:
            payload["user_id"] = args.user
        job_id = enqueue_scrape(runtime.queues, payload)
        print(f"📬 Queued scrape job {job_id}")
        return

    print(f"🔍 Scraping {', '.join(boards)} for '{args.query}'...")
    result = runtime.pipeline.gather_jobs(
        args.query, args.location, max_results, runtime.scrape_context(), boards,
    )

    by_board = {}
    for posting in result.postings:
        by_board.setdefault(posting.source.lower(), []).append(posting)
    stored = sum(len(runtime.job_store.store_scraped_postings(board, items)) for board, items in by_board.items())

    print(f"\n✅ Found {len(result.postings)} unique postings, stored {stored}\n")
    for i, posting in enumerate(result.postings[:20], 1):
        salary = f" | {posting.salary_range.label or posting.salary_range.to_dict()}" if posting.has_salary else ""
        print(f"{i:2}. {posting.title}")
        print(f"    {posting.company} | {posting.location or 'Remote'}{salary}")
        print(f"    Source: {posting.source} | {posting.application_url}")

    for error in result.errors:
        print(f"⚠️  {error}")

    if args.output:
        with open(args.output, 'w') as f:
            json.dump([posting.to_dict() for posting in result.postings], f, indent=2, default=str)
        print(f"💾 Saved {len(result.postings)} postings to {args.output}")

    if args.user:
        _print_matches(runtime, args.user, JobSearchFilters(query=args.query, location=args.location, limit=30), 10)


def cmd_status(args, runtime: Runtime):
    """Execute status command."""
    initialize_queues(runtime, schedule_defaults=False)
    print("\n📊 Queue Status\n")
    for detail in runtime.queues.status():
        if "error" in detail:
            print(f"   {detail['queue']:<14} ERROR {detail['error']}")
            continue
        counts = detail["counts"]
        print(
            f"   {detail['queue']:<14} {detail['health']:<10} "
            f"waiting={counts['waiting']} delayed={counts['delayed']} active={counts['active']} "
            f"completed={counts['completed']} failed={counts['failed']}"
        )


def cmd_match(args, runtime: Runtime):
    """Execute match command."""
    filters = JobSearchFilters(
        query=args.query,
        location=args.location,
        remote_only=args.remote,
        min_salary=args.min_salary,
        threshold=args.threshold if args.threshold is not None else runtime.config.get("matching.search_threshold", 0.6),
    )
    _print_matches(runtime, args.user, filters, args.top)


def _print_matches(runtime: Runtime, user_id: str, filters: JobSearchFilters, top: int):
    listings = runtime.search.search_jobs_for_user(user_id, filters)
    print(f"\n🎯 Top {min(top, len(listings))} of {len(listings)} matches for {user_id}:\n")
    print("-" * 80)

    for i, listing in enumerate(listings[:top], 1):
        posting = listing.posting
        marker = "✅" if listing.match.passes_threshold else "  "
        print(f"\n{i}. {marker} {posting.title} @ {posting.company} (id {posting.id})")
        print(f"   Location: {posting.location or 'n/a'}")
        print(f"   📈 Match: {listing.match_score}%")
        for reason in listing.match.reasons:
            print(f"   - {reason}")


def cmd_apply(args, runtime: Runtime):
    """Execute apply command."""
    if runtime.job_store.get_posting(args.posting_id) is None:
        raise ValueError(f"Posting {args.posting_id} not found")

    application = runtime.tracker.create_application(args.user, args.posting_id, args.priority)
    print(f"📝 Queued application {application.id}")

    if not args.no_submit:
        initialize_queues(runtime)
        job_id = enqueue_application_submission(runtime.queues, application.id)
        print(f"📬 Submission job {job_id} queued. Run 'job-autopilot worker' to process it.")


def cmd_track(args, runtime: Runtime):
    """Execute track command."""
    tracker = runtime.tracker

    if args.stats:
        stats = tracker.get_statistics(args.user)
        print(f"\n📊 Applications: {stats['total']}")
        for status, count in stats["by_status"].items():
            print(f"   {status:<24} {count}")
        print(f"   Response rate: {stats['response_rate']:.0f}%")
        return

    if args.update:
        if args.new_status:
            tracker.update_application_status(args.update, ApplicationStatus(args.new_status), user_id=args.user)
            print(f"✅ Updated {args.update} to {args.new_status}")
        if args.note:
            tracker.add_note(args.user, args.update, args.note)
            print(f"✅ Added note to {args.update}")
        return

    if args.show:
        application = tracker.get_application(args.user, args.show)
        print(json.dumps(application.to_dict(), indent=2, default=str))
        return

    applications = tracker.list_application_queue(args.user)
    print(f"\n📋 {len(applications)} applications\n")
    for application in applications:
        latest = application.events[-1].type.value if application.events else "-"
        print(
            f"   [{application.priority:>3}] {application.id}  {application.status.value:<24} "
            f"posting {application.posting_id}  last: {latest}"
        )


def cmd_reorder(args, runtime: Runtime):
    """Execute reorder command."""
    runtime.tracker.reorder_applications(args.user, args.ids)
    runtime.audit.record(args.user, "applications.reordered", "applications", {"order": args.ids})
    print(f"✅ Reordered {len(args.ids)} applications")


def cmd_serve(args, runtime: Runtime):
    """Execute serve command."""
    import uvicorn

    from job_autopilot.api import create_app

    host = args.host or runtime.config.get("api.host", "127.0.0.1")
    port = args.port or runtime.config.get("api.port", 8000)
    uvicorn.run(create_app(runtime), host=host, port=int(port))


def cmd_config(args, config: Config):
    """Execute config command."""
    if args.init:
        config = Config.create_default_config(args.config)
        print(f"✅ Created config at: {config.config_path}")

    elif args.show:
        print("\n📋 Current Configuration\n")
        config.print_config()

    elif args.set:
        key, value = args.set
        # Try to parse as JSON for complex values
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            pass

        config.set(key, value)
        config.save()
        print(f"✅ Set {key} = {value}")

    elif args.set_secret:
        name, value = args.set_secret
        config.set_secret(name, value)
        print(f"✅ Set secret {name}")

    else:
        print("Use --show, --set, --set-secret, or --init")


if __name__ == "__main__":
    main()
