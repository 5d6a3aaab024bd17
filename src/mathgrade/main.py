"""
Main CLI entry point for mathgrade.

Usage:
    mathgrade grade homework.jpg --key answers.json
    mathgrade enqueue sub-1 sub-2 --project algebra-1 --priority 5
    mathgrade stats
    mathgrade release-stale
    mathgrade cleanup --days 30
    mathgrade worker --batches 10
    mathgrade api --port 8000
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mathgrade.config.constants import API_HOST, API_PORT, CLEANUP_DAYS_DEFAULT, SUPPORTED_MIME_TYPES
from mathgrade.config.logging_config import setup_structured_logging
from mathgrade.config.settings import Settings, get_settings
from mathgrade.core.exceptions import ConfigurationError, MathGradeError
from mathgrade.core.models import (
    AnswerKeyEntry,
    EnqueueRequest,
    GradingOptions,
    GradingRequest,
    GradingResult,
    ImageInput,
)
from mathgrade.processing.queue import ProcessingQueue
from mathgrade.processing.worker import QueueWorker

console = Console()


# ==================== Wiring ====================

def build_queue(settings: Settings) -> ProcessingQueue:
    from mathgrade.db.database import create_session_factory, init_db

    engine, session_factory = create_session_factory(settings.database_url)
    init_db(engine)
    return ProcessingQueue(
        session_factory,
        max_attempts=settings.max_attempts,
        lock_timeout_minutes=settings.lock_timeout_minutes,
    )


def build_worker(settings: Settings, queue: ProcessingQueue, worker_id: Optional[str] = None) -> QueueWorker:
    """
    Worker over the JSON file store in settings.data_dir.

    Raises:
        ConfigurationError: No vision provider configured
    """
    from mathgrade.grading.factory import create_orchestrator
    from mathgrade.processing.blob import FileBlobFetcher, HttpBlobFetcher, RoutingBlobFetcher
    from mathgrade.processing.store import JsonFileStore
    from mathgrade.utils.metrics import MetricsCollector

    store = JsonFileStore(settings.data_dir)
    metrics = MetricsCollector()
    return QueueWorker(
        queue=queue,
        orchestrator=create_orchestrator(settings, metrics),
        source=store,
        fetcher=RoutingBlobFetcher(HttpBlobFetcher(), FileBlobFetcher(settings.data_dir)),
        sink=store,
        worker_id=worker_id,
        batch_size=settings.worker_batch_size,
        poll_interval=settings.worker_poll_interval,
        options=GradingOptions(use_ocr=settings.use_ocr, enable_verification=settings.enable_verification),
        metrics=metrics,
    )


def load_answer_key(path: Optional[str], inline: Optional[List[str]]) -> List[AnswerKeyEntry]:
    """
    Answer key from a JSON file (list of entries) and/or inline "N=answer" pairs.

    Inline alternates are separated by "|": "3=1/2|0.5".
    """
    entries: List[AnswerKeyEntry] = []
    if path:
        with open(path, 'r', encoding='utf-8') as f:
            entries.extend(AnswerKeyEntry.model_validate(e) for e in json.load(f))

    for pair in inline or []:
        number, _, answers = pair.partition("=")
        if not number.strip().isdigit() or not answers.strip():
            raise ValueError(f"Invalid answer key entry '{pair}', expected N=answer")
        first, *alternates = [a.strip() for a in answers.split("|") if a.strip()]
        entries.append(AnswerKeyEntry(question_number=int(number), correct_answer=first, alternates=alternates))

    return entries


# ==================== Output ====================

def print_result(result: GradingResult) -> None:
    if not result.success:
        console.print(Panel(result.error or "Grading failed", title="[red]Grading failed[/red]", border_style="red"))
        return

    table = Table(title=f"Submission: {result.submission_id}")
    table.add_column("Q", style="cyan", justify="right")
    table.add_column("Problem")
    table.add_column("AI answer", style="green")
    table.add_column("Student")
    table.add_column("Points", justify="right")
    table.add_column("Level")
    table.add_column("Check")
    table.add_column("Notes", style="yellow")

    for q in result.questions:
        mark = "[green]✓[/green]" if q.is_correct else "[red]✗[/red]"
        notes = []
        if q.verification_conflict:
            notes.append(f"verification: {q.verification_answer}")
        if q.has_reading_conflict:
            notes.append("reading conflict")
        if q.discrepancy:
            notes.append(q.discrepancy)
        if q.readability_issue:
            notes.append(q.readability_issue)

        table.add_row(
            str(q.question_number),
            q.problem_text,
            q.ai_answer,
            f"{q.student_answer} {mark}",
            f"{q.points_awarded:g}/{q.points_possible:g}",
            q.difficulty_level.value,
            q.verification_method.value,
            "\n".join(notes),
        )

    console.print(table)
    console.print(
        f"Total: [bold]{result.total_score:g}/{result.total_possible:g}[/bold] "
        f"({result.percentage}%) via {result.provider}"
    )
    if result.detected_student_name:
        console.print(f"Student: {result.detected_student_name}")
    if result.needs_review:
        console.print(f"[yellow]Needs review:[/yellow] {result.review_reason}")


# ==================== Commands ====================

async def command_grade(args, settings: Settings) -> int:
    """Grade a local image and print the result."""
    from mathgrade.grading.factory import create_orchestrator

    image_path = Path(args.image)
    if not image_path.is_file():
        console.print(f"[red]File not found: {image_path}[/red]")
        return 1

    suffix = image_path.suffix.lower().lstrip(".")
    mime_type = f"image/{'jpeg' if suffix == 'jpg' else suffix}"
    if mime_type not in SUPPORTED_MIME_TYPES:
        console.print(f"[red]Unsupported image type: {image_path.suffix}[/red]")
        return 1

    try:
        answer_key = load_answer_key(args.key, args.answer)
    except (OSError, ValueError) as e:
        console.print(f"[red]Invalid answer key: {e}[/red]")
        return 1

    orchestrator = create_orchestrator(settings)
    request = GradingRequest(
        submission_id=args.submission or image_path.stem,
        image=ImageInput.from_bytes(image_path.read_bytes(), mime_type),
        answer_key=answer_key,
        options=GradingOptions(
            use_ocr=not args.no_ocr and settings.use_ocr,
            enable_verification=not args.no_verify,
            preferred_provider=args.provider,
        ),
    )

    try:
        with console.status("Grading..."):
            result = await orchestrator.grade(request)
    finally:
        await orchestrator.manager.aclose()

    if args.json:
        console.print_json(result.model_dump_json())
    else:
        print_result(result)
    return 0 if result.success else 1


def command_enqueue(args, settings: Settings) -> int:
    if args.image:
        from mathgrade.processing.store import JsonFileStore

        if len(args.submissions) != 1:
            console.print("[red]--image registers exactly one submission[/red]")
            return 1
        answer_key = load_answer_key(args.key, args.answer)
        path = JsonFileStore(settings.data_dir).add_submission(
            args.project, args.submissions[0], args.image, answer_key
        )
        console.print(f"Registered submission in {path}")

    queue = build_queue(settings)
    requests = [
        EnqueueRequest(submission_id=s, project_id=args.project, priority=args.priority)
        for s in args.submissions
    ]
    if len(requests) == 1:
        job_id = queue.enqueue(requests[0].submission_id, args.project, args.priority)
        console.print(f"[green]Enqueued[/green] {requests[0].submission_id} as job {job_id}")
    else:
        count = queue.enqueue_many(requests)
        console.print(f"[green]Enqueued {count} submissions[/green] for project {args.project}")
    return 0


def command_stats(args, settings: Settings) -> int:
    queue = build_queue(settings)

    if args.project:
        table = Table(title=f"Project: {args.project}")
        for column in ("Job", "Submission", "Status", "Attempts", "Error"):
            table.add_column(column)
        for item in queue.project_items(args.project):
            table.add_row(item.id, item.submission_id, item.status.value, str(item.attempts), item.error_message or "")
        console.print(table)
        return 0

    stats = queue.stats()
    table = Table(title="Processing Queue")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Pending", str(stats.pending))
    table.add_row("Processing", str(stats.processing))
    table.add_row("Completed", str(stats.completed))
    table.add_row("Failed", str(stats.failed))
    table.add_row("Total", str(stats.total), style="bold")
    console.print(table)
    return 0


def command_release_stale(args, settings: Settings) -> int:
    released = build_queue(settings).release_stale()
    console.print(f"Released {released} stale lock(s)")
    return 0


def command_cleanup(args, settings: Settings) -> int:
    deleted = build_queue(settings).cleanup(days_old=args.days)
    console.print(f"Deleted {deleted} completed job(s) older than {args.days} days")
    return 0


async def command_worker(args, settings: Settings) -> int:
    """Run the queue worker until interrupted."""
    worker = build_worker(settings, build_queue(settings), worker_id=args.worker_id)
    console.print(f"[bold green]Worker {worker.worker_id} started[/bold green] (Ctrl+C to stop)")

    try:
        if args.once:
            report = await worker.run_once()
            console.print(
                f"Processed {report.processed}: {report.succeeded} succeeded, {report.failed} failed"
            )
        else:
            await worker.run_forever(max_batches=args.batches)
    finally:
        await worker.orchestrator.manager.aclose()
    return 0


def command_api(args, settings: Settings) -> int:
    """Start the API server."""
    import uvicorn

    from mathgrade.api.app import create_app

    app = create_app(settings=settings)

    console.print(f"[bold green]Starting API server[/bold green]")
    console.print(f"Host: {args.host}")
    console.print(f"Port: {args.port}")
    console.print(f"Docs: http://{args.host}:{args.port}/docs")

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mathgrade",
        description="Math homework grading pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s grade homework.jpg
  %(prog)s grade homework.jpg -a 1=4 -a "2=1/2|0.5"
  %(prog)s enqueue sub-1 sub-2 --project algebra-1
  %(prog)s worker --once
  %(prog)s api --port 8000

The answer key only produces a discrepancy note. Correctness always comes
from the model's own calculation.
        """
    )
    parser.add_argument("--log-level", help="Override MATHGRADE_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    grade_parser = subparsers.add_parser("grade", help="Grade a homework photo")
    grade_parser.add_argument("image", help="Image file (jpg, png, webp, gif)")
    grade_parser.add_argument("--key", help="Answer key JSON file")
    grade_parser.add_argument("-a", "--answer", action="append", help="Inline answer key entry N=answer")
    grade_parser.add_argument("--submission", help="Submission id (default: file name)")
    grade_parser.add_argument("--provider", help="Preferred vision provider")
    grade_parser.add_argument("--no-ocr", action="store_true", help="Skip Mathpix OCR")
    grade_parser.add_argument("--no-verify", action="store_true", help="Skip verification")
    grade_parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")

    enqueue_parser = subparsers.add_parser("enqueue", help="Add submissions to the queue")
    enqueue_parser.add_argument("submissions", nargs="+", help="Submission ids")
    enqueue_parser.add_argument("--project", required=True, help="Project id")
    enqueue_parser.add_argument("--priority", type=int, default=0, help="Higher runs first")
    enqueue_parser.add_argument("--image", help="Register the submission with this image path or URL")
    enqueue_parser.add_argument("--key", help="Answer key JSON file (with --image)")
    enqueue_parser.add_argument("-a", "--answer", action="append", help="Inline answer key entry N=answer")

    stats_parser = subparsers.add_parser("stats", help="Show queue statistics")
    stats_parser.add_argument("--project", help="List the jobs of one project")

    subparsers.add_parser("release-stale", help="Return stale locks to pending")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old completed jobs")
    cleanup_parser.add_argument("--days", type=int, default=CLEANUP_DAYS_DEFAULT, help="Retention in days")

    worker_parser = subparsers.add_parser("worker", help="Run the queue worker")
    worker_parser.add_argument("--worker-id", help="Lock owner name")
    worker_parser.add_argument("--once", action="store_true", help="Process a single batch and exit")
    worker_parser.add_argument("--batches", type=int, help="Stop after this many batches")

    api_parser = subparsers.add_parser("api", help="Start API server")
    api_parser.add_argument("--host", default=API_HOST, help="Host to bind to")
    api_parser.add_argument("--port", type=int, default=API_PORT, help="Port to bind to")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    # JSON lines for the long-running commands, readable output otherwise
    serialize = args.command in ("worker", "api")
    setup_structured_logging(args.log_level or settings.log_level, settings.log_file, serialize=serialize)

    try:
        if args.command == "grade":
            return asyncio.run(command_grade(args, settings))
        elif args.command == "enqueue":
            return command_enqueue(args, settings)
        elif args.command == "stats":
            return command_stats(args, settings)
        elif args.command == "release-stale":
            return command_release_stale(args, settings)
        elif args.command == "cleanup":
            return command_cleanup(args, settings)
        elif args.command == "worker":
            return asyncio.run(command_worker(args, settings))
        elif args.command == "api":
            return command_api(args, settings)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e.message}[/red]")
        return 2
    except MathGradeError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
