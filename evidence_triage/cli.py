"""Command-line interface for Evidence Triage."""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from tqdm import tqdm

from evidence_triage import __version__
from evidence_triage.analysis.patterns import PatternEngine
from evidence_triage.analysis.scoring import HybridScorer
from evidence_triage.config import TriageSettings, load_settings
from evidence_triage.core.database import get_engine, init_db
from evidence_triage.core.ingest import EvidenceIngestor
from evidence_triage.core.jobs import AnalysisOptions, JobOrchestrator
from evidence_triage.core.store import AnalysisJobStore, CaseStore, EvidenceStore
from evidence_triage.llm.evidence_scorer import LLMEvidenceScorer
from evidence_triage.llm.mode_manager import LLMMode, LLMModeManager
from evidence_triage.llm.ollama_client import OllamaClient
from evidence_triage.output.json_export import JSONExporter
from evidence_triage.utils.audit import AuditLevel, get_audit_logger
from evidence_triage.utils.exceptions import TriageError

console = Console()

PRIORITY_COLORS = {
    "critical": "red bold",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}

STATUS_COLORS = {
    "pending": "blue",
    "processing": "yellow",
    "completed": "green",
    "failed": "red",
    "cancelled": "dim",
}


def print_status(status: str, message: str) -> None:
    """Print a status message with consistent formatting.

    Args:
        status: Status indicator ([OK], [FAIL], [WARN], [INFO], [ERROR])
        message: Message to display
    """
    color_map = {
        "[OK]": "green",
        "[FAIL]": "red",
        "[WARN]": "yellow",
        "[INFO]": "blue",
        "[ERROR]": "red bold",
    }
    color = color_map.get(status, "white")
    console.print(f"[{color}]{status}[/{color}] {message}", highlight=False)


def db_path_option(func: Callable) -> Callable:
    return click.option(
        "--db-path",
        type=click.Path(dir_okay=False),
        default=None,
        help="SQLite database path (default: from settings)",
    )(func)


def format_options(func: Callable) -> Callable:
    func = click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write JSON report to file")(func)
    func = click.option(
        "-f", "--format", "output_format",
        type=click.Choice(["table", "json"]),
        default="table",
    )(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="evidence-triage")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings file (YAML or JSON)",
)
@click.option(
    "--llm-mode",
    type=click.Choice(["auto", "force", "off"], case_sensitive=False),
    default=None,
    help="LLM scoring mode: auto (use Ollama if reachable), force, off",
)
@click.option("-v", "--verbose", count=True, help="Verbosity level")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], llm_mode: Optional[str], verbose: int):
    """Evidence Triage - Forensic export normalization and prioritization.

    Ingest message, call, location and contact exports from extraction
    tools, score every record for investigative priority, and surface
    behavioral patterns across a case.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    ctx.ensure_object(dict)
    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except (OSError, ValueError) as e:
        print_status("[ERROR]", f"Invalid settings: {e}")
        sys.exit(1)

    if llm_mode:
        settings.llm_mode = llm_mode.lower()
    ctx.obj["settings"] = settings


def _settings(ctx: click.Context) -> TriageSettings:
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = load_settings()
    return ctx.obj["settings"]


def _engine(ctx: click.Context, db_path: Optional[str]):
    engine = get_engine(db_path or _settings(ctx).db_path)
    init_db(engine)
    return engine


def _audit(ctx: click.Context):
    return get_audit_logger(Path(_settings(ctx).audit_log_dir))


def _llm_client(settings: TriageSettings) -> OllamaClient:
    return OllamaClient(
        base_url=settings.ollama_url,
        model=settings.ollama_model,
        timeout=settings.ollama_timeout,
    )


def _mode_manager(settings: TriageSettings) -> LLMModeManager:
    try:
        mode = LLMMode.from_string(settings.llm_mode)
    except ValueError as e:
        print_status("[WARN]", f"{e}. Using AUTO.")
        mode = LLMMode.AUTO
    return LLMModeManager(mode=mode, client=_llm_client(settings))


def _emit(payload: Any, output_format: str, output: Optional[str], render: Callable[[Any], None]) -> None:
    """Write a report as JSON (stdout or file) or render it as tables."""
    exporter = JSONExporter(indent=2)
    if output:
        exporter.to_file(payload, output)
        print_status("[OK]", f"Report saved to: {output}")
    elif output_format == "json":
        click.echo(exporter.to_json(payload))
    else:
        render(payload)


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def _truncate(text: Optional[str], width: int = 60) -> str:
    if not text:
        return ""
    return text if len(text) <= width else text[:width - 3] + "..."


# ----------------------------------------------------------------------
# Setup and ingestion
# ----------------------------------------------------------------------

@main.command(name="init-db")
@db_path_option
@click.pass_context
def init_db_command(ctx: click.Context, db_path: Optional[str]):
    """Create the database tables (safe to run repeatedly)."""
    path = db_path or _settings(ctx).db_path
    try:
        _engine(ctx, path)
        print_status("[OK]", f"Database ready: {path}")
    except Exception as e:
        print_status("[ERROR]", f"Database initialization failed: {e}")
        sys.exit(1)


@main.command(name="create-case")
@click.argument("case-name")
@click.option("--case-id", help="Case identifier (generated if not provided)")
@click.option("--investigator", help="Lead investigator")
@click.option("--description", help="Case description")
@db_path_option
@click.pass_context
def create_case(ctx: click.Context, case_name: str, case_id: Optional[str],
                investigator: Optional[str], description: Optional[str], db_path: Optional[str]):
    """Create a new case.

    CASE-NAME is a human-readable case title.
    """
    try:
        case = CaseStore(_engine(ctx, db_path)).create(
            case_name=case_name,
            case_id=case_id,
            investigator=investigator,
            description=description,
        )
        _audit(ctx).log(
            AuditLevel.INFO,
            "CASE_CREATED",
            {"case_name": case_name, "investigator": investigator},
            case_id=case.id,
        )
        print_status("[OK]", f"Created case {case.id}: {case.case_name}")
    except TriageError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("--case-id", required=True, help="Case to ingest into")
@db_path_option
@click.pass_context
def ingest(ctx: click.Context, filepath: str, case_id: str, db_path: Optional[str]):
    """Ingest a forensic export file (.csv, .xlsx, .xls) into a case.

    FILEPATH is the export to ingest.
    """
    file_path = Path(filepath)
    console.print(Panel(
        f"[bold]Evidence Ingestion[/bold]\nFile: {file_path.name}\nCase: {case_id}",
        style="blue",
    ))

    try:
        ingestor = EvidenceIngestor(_engine(ctx, db_path), audit_logger=_audit(ctx))

        with tqdm(desc="Parsing rows", unit="row", file=sys.stderr) as pbar:
            def on_progress(count: int) -> None:
                pbar.update(count - pbar.n)

            result = ingestor.ingest(file_path, case_id, on_progress=on_progress)
            pbar.update(result.total_rows - pbar.n)

        table = Table(title="Ingestion Complete", show_header=True, header_style="bold green")
        table.add_column("Property", style="cyan")
        table.add_column("Value")
        table.add_row("Job ID", result.job_id)
        table.add_row("File", result.filename)
        table.add_row("SHA-256", result.sha256)
        table.add_row("Rows", str(result.total_rows))
        table.add_row("Saved", str(result.saved_records))
        table.add_row("Failed", str(result.failed_records))
        if result.sheets:
            table.add_row("Sheets", ", ".join(result.sheets))
        for source, mapping in result.mappings.items():
            detected = ", ".join(f"{k}={v}" for k, v in mapping.items()) or "(none)"
            table.add_row(f"Columns [{source}]", detected)
        console.print(table)

        status = "[OK]" if not result.failed_records else "[WARN]"
        print_status(status, f"{result.saved_records} records ingested into {case_id}")

    except TriageError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)


# ----------------------------------------------------------------------
# Analysis jobs
# ----------------------------------------------------------------------

@main.command()
@click.argument("case-id")
@click.option("--batch-size", type=int, default=None, help="Records scored concurrently per batch")
@click.option("--delay-ms", type=int, default=None, help="Pause between batches in milliseconds")
@click.option("--no-llm", is_flag=True, help="Pattern-only scoring")
@click.option("--recover", is_flag=True,
              help="Fail a job left pending or processing by a crashed run before starting")
@db_path_option
@click.pass_context
def analyze(ctx: click.Context, case_id: str, batch_size: Optional[int], delay_ms: Optional[int],
            no_llm: bool, recover: bool, db_path: Optional[str]):
    """Score every unscored record of a case.

    CASE-ID is the case to analyze.
    """
    settings = _settings(ctx)
    try:
        options = AnalysisOptions(
            batch_size=batch_size or settings.batch_size,
            use_llm=not no_llm,
            inter_batch_delay_ms=settings.inter_batch_delay_ms if delay_ms is None else delay_ms,
        )
    except ValueError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)

    mode_manager = _mode_manager(settings)
    scorer = HybridScorer(
        llm_scorer=LLMEvidenceScorer(client=mode_manager.client),
        mode_manager=mode_manager,
    )
    if options.use_llm and not mode_manager.is_enabled():
        print_status("[WARN]", "LLM unavailable - using pattern-based scoring")

    pbar = tqdm(desc="Scoring records", unit="rec", file=sys.stderr)

    def on_batch(job) -> None:
        if pbar.total != job.total_records:
            pbar.total = job.total_records
            pbar.refresh()
        pbar.update(job.processed_records - pbar.n)

    try:
        with JobOrchestrator(
            _engine(ctx, db_path),
            scorer=scorer,
            max_workers=settings.max_workers,
            on_batch_complete=on_batch,
            audit_logger=_audit(ctx),
        ) as orchestrator:
            job_id = orchestrator.start_analysis(case_id, options, recover_interrupted=recover)
            print_status("[INFO]", f"Started analysis job {job_id}")
            job = orchestrator.wait(job_id)
    except TriageError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)
    finally:
        pbar.close()

    _print_job_table([job], title="Analysis Job")
    if job.status.value == "completed":
        print_status("[OK]", f"Analysis complete: {job.high_priority_count} high priority records")
    elif job.status.value == "cancelled":
        print_status("[WARN]", "Analysis cancelled")
    else:
        print_status("[FAIL]", f"Analysis failed: {job.error_message}")
        sys.exit(1)


def _print_job_table(jobs, title: str = "Analysis Jobs") -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Job ID", style="cyan")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Started")

    for job in jobs:
        color = STATUS_COLORS.get(job.status.value, "white")
        table.add_row(
            job.id,
            f"[{color}]{job.status.value}[/{color}]",
            f"{job.processed_records}/{job.total_records} ({job.progress}%)",
            str(job.failed_records),
            str(job.high_priority_count),
            str(job.critical_count),
            f"{job.average_score:.1f}",
            _fmt_time(job.started_at),
        )
    console.print(table)


@main.command()
@click.argument("case-id")
@click.option("--limit", type=int, default=5, help="Number of jobs to show")
@db_path_option
@format_options
@click.pass_context
def jobs(ctx: click.Context, case_id: str, limit: int, db_path: Optional[str],
         output_format: str, output: Optional[str]):
    """Show the most recent analysis jobs for a case.

    CASE-ID is the case to inspect.
    """
    latest = AnalysisJobStore(_engine(ctx, db_path)).latest_for_case(case_id, limit)
    _emit(latest, output_format, output, lambda payload: _print_job_table(payload))


@main.command()
@click.argument("job-id")
@click.option("--force", is_flag=True,
              help="Mark the job failed (interrupted) at once, e.g. after a crash")
@db_path_option
@click.pass_context
def cancel(ctx: click.Context, job_id: str, force: bool, db_path: Optional[str]):
    """Cancel an analysis job.

    A pending job is cancelled at once; a running job stops after its
    current batch. With --force the job is failed immediately, which frees
    a case whose job was orphaned by a crashed process.
    """
    try:
        store = AnalysisJobStore(_engine(ctx, db_path))
        if force:
            interrupted = store.mark_interrupted(job_id)
            job = store.get(job_id)
            if interrupted:
                _audit(ctx).log_job_event("ANALYSIS_INTERRUPTED", job.case_id, job.id, success=False)
        else:
            job = store.request_cancel(job_id)
            _audit(ctx).log_job_event("ANALYSIS_CANCEL_REQUESTED", job.case_id, job.id)
    except TriageError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)

    if force:
        if interrupted:
            print_status("[OK]", f"Job {job_id} marked failed ({job.error_message})")
        else:
            print_status("[WARN]", f"Job {job_id} already {job.status.value}")
        return

    if job.status.value == "cancelled":
        print_status("[OK]", f"Job {job_id} cancelled")
    elif job.status.value == "processing":
        print_status("[INFO]", f"Job {job_id} will stop after its current batch")
    else:
        print_status("[WARN]", f"Job {job_id} already {job.status.value}")


# ----------------------------------------------------------------------
# Evidence review
# ----------------------------------------------------------------------

@main.command()
@click.argument("case-id")
@click.option("--type", "evidence_type",
              type=click.Choice(["message", "call", "location", "contact", "media", "other"]))
@click.option("--priority", type=click.Choice(["critical", "high", "medium", "low"]))
@click.option("--source", help="Exact source app")
@click.option("--bookmarked", is_flag=True, help="Only bookmarked records")
@click.option("--unreviewed", is_flag=True, help="Only records not yet reviewed")
@click.option("--search", help="Text search over content, parties and summary")
@click.option("--min-score", type=click.IntRange(0, 100))
@click.option("--sort", "sort_by", type=click.Choice(["timestamp", "priority"]), default="priority")
@click.option("--ascending", is_flag=True, help="Sort ascending")
@click.option("--page", type=click.IntRange(1), default=1)
@click.option("--page-size", type=click.IntRange(1, 500), default=25)
@db_path_option
@format_options
@click.pass_context
def evidence(ctx: click.Context, case_id: str, evidence_type: Optional[str], priority: Optional[str],
             source: Optional[str], bookmarked: Optional[bool], unreviewed: bool, search: Optional[str],
             min_score: Optional[int], sort_by: str, ascending: bool, page: int, page_size: int,
             db_path: Optional[str], output_format: str, output: Optional[str]):
    """List evidence records of a case with filters.

    CASE-ID is the case to list.
    """
    result = EvidenceStore(_engine(ctx, db_path)).query(
        case_id,
        type=evidence_type,
        priority=priority,
        source=source,
        bookmarked=True if bookmarked else None,
        reviewed=False if unreviewed else None,
        search=search,
        min_score=min_score,
        sort_by=sort_by,
        descending=not ascending,
        page=page,
        page_size=page_size,
    )

    def render(page_result) -> None:
        table = Table(
            title=f"Evidence (page {page_result.page}/{max(page_result.pages, 1)}, {page_result.total} total)",
            show_header=True,
            header_style="bold",
        )
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Type")
        table.add_column("Time")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Score", justify="right")
        table.add_column("Flags")
        table.add_column("Content")

        for rec in page_result.items:
            color = PRIORITY_COLORS.get(rec.priority.value, "white")
            marker = "*" if rec.is_bookmarked else ""
            table.add_row(
                f"{rec.id[:8]}{marker}",
                rec.type.value,
                _fmt_time(rec.timestamp),
                rec.sender or "",
                rec.receiver or "",
                f"[{color}]{rec.priority_score}[/{color}]",
                ", ".join(rec.flags),
                _truncate(rec.content or rec.contact_name),
            )
        console.print(table)

    _emit(result, output_format, output, render)


@main.command()
@click.argument("evidence-id")
@click.option("--case-id", help="Restrict to this case")
@click.option("--bookmark/--unbookmark", default=None, help="Set bookmark flag")
@click.option("--toggle-bookmark", is_flag=True, help="Flip bookmark flag")
@click.option("--reviewed/--unreviewed", default=None, help="Set review flag")
@click.option("--notes", help="Replace investigator notes")
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable)")
@db_path_option
@click.pass_context
def mark(ctx: click.Context, evidence_id: str, case_id: Optional[str], bookmark: Optional[bool],
         toggle_bookmark: bool, reviewed: Optional[bool], notes: Optional[str], tags: tuple,
         db_path: Optional[str]):
    """Record investigator review state on one evidence record.

    EVIDENCE-ID is the record to update.
    """
    store = EvidenceStore(_engine(ctx, db_path))
    changes = {
        "is_bookmarked": bookmark,
        "is_reviewed": reviewed,
        "notes": notes,
        "tags": list(tags) if tags else None,
    }

    try:
        if toggle_bookmark:
            changes["is_bookmarked"] = store.toggle_bookmark(evidence_id, case_id)
            record = store.update_investigator(
                evidence_id, case_id,
                is_reviewed=reviewed, notes=notes, tags=changes["tags"],
            )
        else:
            record = store.update_investigator(evidence_id, case_id, **changes)
    except TriageError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)

    applied = {k: v for k, v in changes.items() if v is not None}
    if applied:
        _audit(ctx).log_investigator_action(record.id, record.case_id, applied)

    print_status(
        "[OK]",
        f"Evidence {record.id[:8]}: bookmarked={record.is_bookmarked}, "
        f"reviewed={record.is_reviewed}, tags={record.tags}",
    )


# ----------------------------------------------------------------------
# Pattern analytics
# ----------------------------------------------------------------------

def _pattern_engine(ctx: click.Context, db_path: Optional[str]) -> PatternEngine:
    return PatternEngine(EvidenceStore(_engine(ctx, db_path)))


@main.command()
@click.argument("case-id")
@db_path_option
@format_options
@click.pass_context
def stats(ctx: click.Context, case_id: str, db_path: Optional[str], output_format: str, output: Optional[str]):
    """Headline statistics for a case."""
    report = _pattern_engine(ctx, db_path).case_stats(case_id)

    def render(r) -> None:
        table = Table(title=f"Case {case_id}", show_header=True, header_style="bold")
        table.add_column("Metric", style="cyan")
        table.add_column("Value")
        table.add_row("Total records", str(r.total_records))
        table.add_row("Analyzed", str(r.analyzed))
        table.add_row("Bookmarked", str(r.bookmarked))
        table.add_row("Average score", str(r.priority.avg_score))
        table.add_row("High priority (>=60)", str(r.priority.high))
        table.add_row("Critical (>=80)", str(r.priority.critical))
        if r.timespan:
            table.add_row(
                "Timespan",
                f"{_fmt_time(r.timespan.first)} -> {_fmt_time(r.timespan.last)} ({r.timespan.days} days)",
            )
        for type_, count in sorted(r.types.items()):
            table.add_row(f"Type: {type_}", str(count))
        for source, count in sorted(r.sources.items(), key=lambda item: -item[1]):
            table.add_row(f"Source: {source}", str(count))
        console.print(table)

    _emit(report, output_format, output, render)


@main.command()
@click.argument("case-id")
@db_path_option
@format_options
@click.pass_context
def timeline(ctx: click.Context, case_id: str, db_path: Optional[str], output_format: str, output: Optional[str]):
    """Activity per day, hour of day and weekday."""
    report = _pattern_engine(ctx, db_path).temporal_distribution(case_id)

    def render(r) -> None:
        table = Table(title="Activity by Hour", show_header=True, header_style="bold")
        table.add_column("Hour", style="cyan", justify="right")
        table.add_column("Count", justify="right")
        table.add_column("")
        peak = max((h.count for h in r.hourly), default=0)
        for h in r.hourly:
            bar = "#" * max(1, round(h.count / peak * 40)) if peak else ""
            table.add_row(f"{h.hour:02d}", str(h.count), bar)
        console.print(table)

        table = Table(title="Activity by Weekday", show_header=True, header_style="bold")
        table.add_column("Day", style="cyan")
        table.add_column("Count", justify="right")
        for w in r.weekday:
            table.add_row(w.day, str(w.count))
        console.print(table)

        console.print(f"[dim]{len(r.daily)} active days[/dim]")

    _emit(report, output_format, output, render)


@main.command()
@click.argument("case-id")
@click.option("--window-hours", type=click.IntRange(1), default=1, help="Bucket width in hours")
@click.option("--threshold", type=float, default=3.0, help="Multiple of the mean bucket count")
@db_path_option
@format_options
@click.pass_context
def bursts(ctx: click.Context, case_id: str, window_hours: int, threshold: float,
           db_path: Optional[str], output_format: str, output: Optional[str]):
    """Find bursts of unusually dense communication."""
    report = _pattern_engine(ctx, db_path).burst_communication(case_id, window_hours, threshold)

    def render(r) -> None:
        console.print(f"Average per bucket: {r.average}  Threshold: {r.threshold}")
        table = Table(title=f"Bursts ({len(r.bursts)})", show_header=True, header_style="bold")
        table.add_column("Bucket", style="cyan")
        table.add_column("Count", justify="right")
        table.add_column("Intensity", justify="right")
        table.add_column("Sample")
        for b in r.bursts:
            sample = b.samples[0] if b.samples else None
            table.add_row(
                b.hour,
                str(b.count),
                f"{b.intensity:.2f}x",
                _truncate(f"{sample.sender}: {sample.content}") if sample else "",
            )
        console.print(table)

    _emit(report, output_format, output, render)


@main.command(name="late-night")
@click.argument("case-id")
@click.option("--start-hour", type=click.IntRange(0, 23), default=23)
@click.option("--end-hour", type=click.IntRange(0, 23), default=5)
@db_path_option
@format_options
@click.pass_context
def late_night(ctx: click.Context, case_id: str, start_hour: int, end_hour: int,
               db_path: Optional[str], output_format: str, output: Optional[str]):
    """Activity during unusual hours."""
    report = _pattern_engine(ctx, db_path).late_night_activity(case_id, start_hour, end_hour)

    def render(r) -> None:
        table = Table(title=f"Late-Night Activity ({r.total_late_night} records)",
                      show_header=True, header_style="bold")
        table.add_column("Date", style="cyan")
        table.add_column("Count", justify="right")
        table.add_column("Hours")
        for day in r.dates:
            table.add_row(day.date, str(day.count), ", ".join(f"{h:02d}" for h in day.hours))
        console.print(table)

    _emit(report, output_format, output, render)


@main.command()
@click.argument("case-id")
@click.option("--min-messages", type=click.IntRange(1), default=3)
@click.option("--limit", type=click.IntRange(1), default=50)
@db_path_option
@format_options
@click.pass_context
def contacts(ctx: click.Context, case_id: str, min_messages: int, limit: int,
             db_path: Optional[str], output_format: str, output: Optional[str]):
    """Key contacts ranked by message volume."""
    report = _pattern_engine(ctx, db_path).contact_network(case_id, min_messages, limit)

    def render(r) -> None:
        table = Table(title=f"Key Contacts ({r.total_pairs} conversations)",
                      show_header=True, header_style="bold")
        table.add_column("Identity", style="cyan")
        table.add_column("Messages", justify="right")
        table.add_column("Correspondents", justify="right")
        table.add_column("Top contacts")
        for c in r.key_contacts:
            table.add_row(
                c.name,
                str(c.total_messages),
                str(c.unique_contacts),
                ", ".join(f"{t.contact} ({t.count})" for t in c.top_contacts),
            )
        console.print(table)

    _emit(report, output_format, output, render)


@main.command()
@click.argument("case-id")
@click.option("--min-gap-hours", type=float, default=24.0)
@db_path_option
@format_options
@click.pass_context
def gaps(ctx: click.Context, case_id: str, min_gap_hours: float,
         db_path: Optional[str], output_format: str, output: Optional[str]):
    """Silent periods in the case timeline."""
    report = _pattern_engine(ctx, db_path).timeline_gaps(case_id, min_gap_hours)

    def render(r) -> None:
        table = Table(title=f"Timeline Gaps ({r.total_gaps} of {r.total_records} records)",
                      show_header=True, header_style="bold")
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Hours", justify="right")
        table.add_column("Days", justify="right")
        for g in r.gaps:
            table.add_row(_fmt_time(g.start_time), _fmt_time(g.end_time), f"{g.gap_hours:.1f}", f"{g.gap_days:.1f}")
        console.print(table)

    _emit(report, output_format, output, render)


# ----------------------------------------------------------------------
# Status
# ----------------------------------------------------------------------

@main.command(name="llm-status")
@click.pass_context
def llm_status(ctx: click.Context):
    """Check whether LLM scoring is available."""
    manager = _mode_manager(_settings(ctx))
    console.print(Panel(manager.get_status_report(), title="LLM Status", style="blue"))

    client = manager.client
    if manager.mode != LLMMode.OFF and client.is_available():
        version = client.get_version() or "unknown"
        print_status("[OK]", f"Ollama {version} at {client.base_url}")
        if client.is_model_available():
            print_status("[OK]", f"Model '{client.model}' installed")
        else:
            print_status("[WARN]", f"Model '{client.model}' not installed (ollama pull {client.model})")
    elif manager.mode != LLMMode.OFF:
        print_status("[WARN]", f"Ollama not reachable at {client.base_url}")


@main.command()
@click.argument("case-id", required=False)
@db_path_option
@click.pass_context
def info(ctx: click.Context, case_id: Optional[str], db_path: Optional[str]):
    """Show a case (files, jobs, counts), or list all cases."""
    engine = _engine(ctx, db_path)
    cases = CaseStore(engine)

    if case_id is None:
        table = Table(title="Cases", show_header=True, header_style="bold")
        table.add_column("Case ID", style="cyan")
        table.add_column("Name")
        table.add_column("Investigator")
        table.add_column("Records", justify="right")
        table.add_column("High priority", justify="right")
        table.add_column("Created")
        for case in cases.list_cases():
            table.add_row(
                case.id, case.case_name, case.investigator or "-",
                str(case.evidence_count), str(case.high_priority_count),
                _fmt_time(case.created_at),
            )
        console.print(table)
        return

    try:
        case = cases.get(case_id)
    except TriageError as e:
        print_status("[ERROR]", str(e))
        sys.exit(1)

    console.print(Panel(
        f"[bold]{case.case_name}[/bold]\n"
        f"Case ID: {case.id}\n"
        f"Investigator: {case.investigator or '-'}\n"
        f"Status: {case.status}\n"
        f"Records: {case.evidence_count}  High priority: {case.high_priority_count}",
        style="blue",
    ))

    files = cases.uploaded_files(case_id)
    if files:
        table = Table(title="Uploaded Files", show_header=True, header_style="bold")
        table.add_column("File", style="cyan")
        table.add_column("Records", justify="right")
        table.add_column("SHA-256")
        table.add_column("Uploaded")
        for f in files:
            table.add_row(f.filename, str(f.record_count), f.sha256[:16] + "...", _fmt_time(f.uploaded_at))
        console.print(table)

    latest = AnalysisJobStore(engine).latest_for_case(case_id)
    if latest:
        _print_job_table(latest, title="Recent Analysis Jobs")


if __name__ == "__main__":
    main()
