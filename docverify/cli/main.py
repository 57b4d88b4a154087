"""Operator CLI for the document verification engine using Typer and Rich."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docverify import __version__
from docverify.audit.hash_chain import AuditChain
from docverify.checks.mock_providers import build_mock_providers
from docverify.config.logging import get_logger
from docverify.config.settings import settings
from docverify.data_management.audit_store import AuditStore
from docverify.data_management.review_store import ReviewStore
from docverify.data_management.schemas.certificate_schema import Certificate, CertificateType
from docverify.data_management.schemas.evidence_schema import EvidenceRecord
from docverify.data_management.schemas.review_schema import ReviewStatus
from docverify.data_management.stores import AUDIT_LOG_FILE, REVIEWS_FILE, Stores
from docverify.notifications.notification_service import NotificationService
from docverify.orchestration.verification_orchestrator import VerificationOrchestrator
from docverify.review.manual_review_queue import ManualReviewQueue

# Initialize CLI app
app = typer.Typer(
    help="DocVerify CLI - document verification orchestration engine",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")

RESULT_STYLES = {"VERIFIED": "green", "UNVERIFIED": "red", "INCONCLUSIVE": "yellow"}


def _resolve_data_dir(data_dir: Optional[Path]) -> Optional[Path]:
    if data_dir is not None:
        return data_dir
    return Path(settings.data_dir) if settings.data_dir else None


@app.command()
def status() -> None:
    """
    Display engine configuration.

    Shows scoring thresholds, pipeline limits, persistence and notification settings.
    """
    logger.info("Displaying system status")

    table = Table(title="DocVerify Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=15)
    table.add_column("Details", style="yellow")

    python_version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Environment", "✓ Ready", python_version)

    table.add_row(
        "Scoring",
        "✓ Active",
        f"Accept ≥ {settings.accept_threshold:g}, Review ≥ {settings.review_threshold:g}, "
        f"HIGH priority < {settings.high_priority_below:g}",
    )
    table.add_row(
        "Pipelines",
        "✓ Active",
        f"Pool: {settings.max_concurrent_pipelines}, Check timeout: {settings.check_timeout_seconds:g}s",
    )
    table.add_row("Review SLA", "✓ Active", f"{settings.review_sla_hours}h after assignment")

    persistence_status = "✓ Enabled" if settings.data_dir else "✗ Memory only"
    table.add_row("Persistence", persistence_status, settings.data_dir or "-")

    if settings.notification_mock_mode or not settings.webhook_url:
        table.add_row("Notifications", "⚠ Log only", settings.webhook_url or "No webhook configured")
    else:
        table.add_row("Notifications", "✓ Webhook", settings.webhook_url)

    table.add_row("Logging", "✓ Active", f"Level: {settings.log_level}, Format: {settings.log_format}")

    console.print(table)


@app.command()
def verify(
    certificate_type: CertificateType = typer.Option(
        CertificateType.SCHOOL_CERTIFICATE, "--type", help="Document classification"
    ),
    issuer: str = typer.Option("Central Board of Secondary Education", help="Issuer name"),
    roll_number: str = typer.Option("1234567", help="Roll number for the issuer portal lookup"),
    exam_year: str = typer.Option("2023", help="Exam year for the issuer portal lookup"),
    student_name: str = typer.Option("Asha Rao", help="Student or holder name"),
    qr: bool = typer.Option(False, "--qr", help="Certificate carries a QR code"),
    signature: bool = typer.Option(False, "--signature", help="Certificate carries a digital signature"),
    aadhaar: Optional[str] = typer.Option(None, help="Aadhaar number (embedded, or the document itself)"),
    pan: Optional[str] = typer.Option(None, help="PAN (embedded, or the document itself)"),
    seed: Optional[int] = typer.Option(None, help="Seed for mock provider outcomes"),
    data_dir: Optional[Path] = typer.Option(None, help="Persist entities under this directory"),
) -> None:
    """
    Run one certificate through the pipeline against mock providers.

    Prints the executed steps, the evidence report and the score breakdown.
    """
    data: dict = {"studentName": student_name, "rollNumber": roll_number, "examYear": exam_year}
    if qr:
        data["qrCodeData"] = f"QR-{roll_number}-{exam_year}"
    if certificate_type == CertificateType.AADHAAR_CARD:
        data["aadhaarNumber"] = aadhaar or ""
    elif certificate_type == CertificateType.PAN_CARD:
        data["panNumber"] = pan or ""
    else:
        if aadhaar:
            data["aadhaar"] = {"aadhaarNumber": aadhaar, "name": student_name}
        if pan:
            data["pan"] = {"panNumber": pan, "name": student_name}

    certificate = Certificate(
        user_id="cli",
        certificate_type=certificate_type,
        issuer_name=issuer,
        certificate_data=data,
        has_qr_code=qr,
        has_digital_signature=signature,
    )
    resolved_dir = _resolve_data_dir(data_dir)
    logger.info(f"Verify command invoked for {certificate.id}", certificate_type=certificate_type.value)

    async def run():
        stores = Stores.in_directory(str(resolved_dir) if resolved_dir else None)
        orchestrator = VerificationOrchestrator(
            stores=stores,
            providers=build_mock_providers(seed=seed),
            notifier=NotificationService(mock_mode=True),
        )
        await stores.certificates.save(certificate)
        started = await orchestrator.start(certificate.id, requested_by="cli")
        verification = await orchestrator.wait_for(started.id)
        steps = await orchestrator.get_steps(started.id)
        return orchestrator, verification, steps

    orchestrator, verification, steps = asyncio.run(run())

    steps_table = Table(title="Verification Steps", show_header=True, header_style="bold magenta")
    steps_table.add_column("#", style="dim", width=3)
    steps_table.add_column("Step", style="cyan")
    steps_table.add_column("Status")
    steps_table.add_column("Duration", justify="right")
    steps_table.add_column("Error", style="red")
    for step in steps:
        style = "green" if step.status.value == "COMPLETED" else "red"
        steps_table.add_row(
            str(step.sequence_number),
            step.step_name,
            f"[{style}]{step.status.value}[/{style}]",
            f"{step.duration_ms or 0} ms",
            step.error_message or "",
        )
    console.print(steps_table)

    if verification.result is None:
        console.print(f"\n[red]✗[/red] Verification {verification.status.value}")
        raise typer.Exit(1)

    record = EvidenceRecord.model_validate(verification.result_data["evidence"])
    console.print(Panel(orchestrator.aggregator.format(record), title="Evidence", border_style="blue"))

    factors = Table(title="Score Breakdown", show_header=True, header_style="bold magenta")
    factors.add_column("Factor", style="cyan")
    factors.add_column("Weight", justify="right")
    factors.add_column("Passed")
    factors.add_column("Contribution", justify="right")
    for factor in verification.result_data["confidence_factors"]:
        factors.add_row(
            factor["name"],
            f"{factor['weight']:g}",
            "✓" if factor["passed"] else "✗",
            f"{factor['contribution']:+.2f}",
        )
    console.print(factors)

    style = RESULT_STYLES.get(verification.result.value, "white")
    console.print(
        f"\n[bold {style}]{verification.result.value}[/bold {style}] "
        f"score {verification.confidence_score:g} "
        f"({verification.result_data['confidence_level']}), "
        f"recommendation {verification.result_data['recommendation']}"
    )
    if "manual_review_id" in verification.result_data:
        console.print(f"[yellow]Manual review queued:[/yellow] {verification.result_data['manual_review_id']}")


@app.command("audit-verify")
def audit_verify(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the audit log"),
) -> None:
    """
    Recompute the audit hash chain and report the first broken entry, if any.
    """
    resolved_dir = _resolve_data_dir(data_dir)
    if resolved_dir is None:
        console.print("[red]✗[/red] No data directory configured (use --data-dir or DATA_DIR)")
        raise typer.Exit(2)

    log_path = resolved_dir / AUDIT_LOG_FILE
    if not log_path.exists():
        console.print(f"[red]✗[/red] Audit log not found: {log_path}")
        raise typer.Exit(2)

    chain = AuditChain(AuditStore(str(log_path)))
    result = asyncio.run(chain.verify())

    if result.valid:
        console.print(f"[green]✓[/green] Audit chain intact ({result.checked} entries)")
        logger.info("Audit chain verified", entries=result.checked)
        return

    console.print(
        f"[red]✗[/red] Audit chain broken at entry {result.broken_index} "
        f"({result.broken_entry_id}): {result.reason}"
    )
    logger.error("Audit chain broken", index=result.broken_index, entry_id=result.broken_entry_id)
    raise typer.Exit(1)


@app.command("review-queue")
def review_queue(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding persisted reviews"),
    review_status: Optional[ReviewStatus] = typer.Option(None, "--status", help="Filter by status"),
    limit: int = typer.Option(20, min=1, help="Maximum reviews to list"),
) -> None:
    """
    List manual reviews in queue order (priority, then age).
    """
    resolved_dir = _resolve_data_dir(data_dir)
    if resolved_dir is None:
        console.print("[red]✗[/red] No data directory configured (use --data-dir or DATA_DIR)")
        raise typer.Exit(2)

    queue = ManualReviewQueue(ReviewStore(str(resolved_dir / REVIEWS_FILE)))

    async def load():
        reviews, total = await queue.list_queue(status=review_status, limit=limit)
        return reviews, total, await queue.get_statistics()

    reviews, total, stats = asyncio.run(load())

    table = Table(title=f"Manual Reviews ({total})", show_header=True, header_style="bold magenta")
    table.add_column("Review", style="dim")
    table.add_column("Certificate", style="cyan")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Verifier")
    table.add_column("SLA")
    for review in reviews:
        sla = "[red]breached[/red]" if review.sla_breached else (
            review.sla_deadline.isoformat(timespec="minutes") if review.sla_deadline else "-"
        )
        table.add_row(
            review.id[:8],
            review.certificate_id[:8],
            review.priority.value,
            review.status.value,
            review.verifier_id or "-",
            sla,
        )
    console.print(table)
    console.print(
        f"[dim]pending {stats.pending} · in progress {stats.in_progress} · "
        f"completed {stats.completed} · escalated {stats.escalated} · "
        f"SLA breached {stats.sla_breached}[/dim]"
    )


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]DocVerify[/bold]")
    console.print(f"Version: {__version__}")


if __name__ == "__main__":
    app()
