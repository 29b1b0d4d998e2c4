"""
Command-line entry points.

    campaign-pipeline worker scraper|matcher|tailor [--campaign-id ID]
    campaign-pipeline launch --owner-id ... --role ... --resume-id ... [--dedicated-workers]
    campaign-pipeline stop CAMPAIGN_ID --owner-id ...
    campaign-pipeline status CAMPAIGN_ID --owner-id ...
"""

import json
from pathlib import Path
from typing import Optional

import typer

from app.core.config import settings
from app.core.database import Base, SessionLocal, engine, init_db
from app.core.logging_config import setup_logging
from app.core.queue import QueueClient, QueueConnectionError
from app.crud import resume as resume_crud
from app.schemas.campaign import CampaignLaunchRequest, CampaignResponse, InstanceCounts
from app.services.campaign_service import CampaignError, CampaignService
from app.workers.runner import WORKER_ROLES, run_worker

app = typer.Typer(help="Campaign pipeline CLI")
resume_app = typer.Typer(help="Manage master resumes")
sweep_app = typer.Typer(help="Run maintenance sweeps once, outside Celery beat")

app.add_typer(resume_app, name="resume")
app.add_typer(sweep_app, name="sweep")


def _configure() -> None:
    setup_logging(settings.LOG_LEVEL, json_logs=False, worker_role="cli")


def _fail(error: CampaignError) -> typer.Exit:
    typer.echo(json.dumps(error.to_payload(), indent=2), err=True)
    return typer.Exit(code=1)


@app.command("init-db")
def init_db_cmd() -> None:
    """Create all tables (development; production uses alembic upgrade head)."""
    _configure()
    init_db()
    Base.metadata.create_all(bind=engine)
    typer.echo(json.dumps({"ok": True}, indent=2))


@app.command("worker")
def worker_cmd(
    role: str = typer.Argument(..., help=f"One of: {', '.join(WORKER_ROLES)}"),
    campaign_id: Optional[str] = typer.Option(
        None,
        "--campaign-id",
        help="Consume this campaign's own queues (launched with --dedicated-workers) and exit when it is cancelled",
    ),
) -> None:
    """Run one pipeline worker until interrupted."""
    if role not in WORKER_ROLES:
        raise typer.BadParameter(f"unknown role '{role}', expected one of: {', '.join(WORKER_ROLES)}")
    raise typer.Exit(code=run_worker(role, campaign_id=campaign_id))


@resume_app.command("add")
def resume_add(
    owner_id: str = typer.Option(..., "--owner-id"),
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
) -> None:
    """Store a plain-text master resume and print its id."""
    _configure()
    with SessionLocal() as db:
        resume = resume_crud.create(
            db,
            owner_id=owner_id,
            text_content=file.read_text(encoding="utf-8"),
            original_name=file.name,
            is_master=True,
        )
        typer.echo(json.dumps({"id": resume.id, "owner_id": resume.owner_id}, indent=2))


@app.command("launch")
def launch_cmd(
    owner_id: str = typer.Option(..., "--owner-id"),
    role: str = typer.Option(..., "--role"),
    resume_id: str = typer.Option(..., "--resume-id"),
    location: str = typer.Option("", "--location"),
    scrapers: int = typer.Option(1, "--scrapers", min=1),
    campaign_id: Optional[str] = typer.Option(None, "--campaign-id"),
    dedicated_workers: bool = typer.Option(
        False, "--dedicated-workers", help="Route missions to per-campaign queues for scoped workers"
    ),
) -> None:
    """Launch a campaign and publish its scrape missions."""
    _configure()
    request = CampaignLaunchRequest(
        owner_id=owner_id,
        target_role=role,
        target_location=location,
        resume_id=resume_id,
        instance_counts=InstanceCounts(scrapers=scrapers),
        campaign_id=campaign_id,
        dedicated_workers=dedicated_workers,
    )
    try:
        with QueueClient() as queue, SessionLocal() as db:
            campaign = CampaignService(db, queue).launch(request)
            typer.echo(json.dumps({"campaign_id": campaign.id, "status": campaign.status.value}, indent=2))
    except CampaignError as e:
        raise _fail(e)
    except QueueConnectionError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


@app.command("stop")
def stop_cmd(
    campaign_id: str = typer.Argument(...),
    owner_id: str = typer.Option(..., "--owner-id"),
) -> None:
    """Mark a running campaign STOPPED."""
    _configure()
    with SessionLocal() as db:
        try:
            campaign = CampaignService(db).stop(campaign_id, owner_id)
        except CampaignError as e:
            raise _fail(e)
        payload = CampaignResponse.model_validate(campaign).model_dump(mode="json")
        typer.echo(json.dumps(payload, indent=2))


@app.command("status")
def status_cmd(
    campaign_id: str = typer.Argument(...),
    owner_id: str = typer.Option(..., "--owner-id"),
) -> None:
    """Print campaign status and stage counts."""
    _configure()
    with SessionLocal() as db:
        try:
            status = CampaignService(db).status(campaign_id, owner_id)
        except CampaignError as e:
            raise _fail(e)
        typer.echo(json.dumps(status.model_dump(mode="json"), indent=2))


@sweep_app.command("completion")
def sweep_completion_cmd() -> None:
    """One completion-detection poll over every running campaign."""
    from app.tasks.campaign_tasks import sweep_completion

    _configure()
    with SessionLocal() as db:
        typer.echo(json.dumps(sweep_completion(db), indent=2))


@sweep_app.command("failed-tailoring")
def sweep_failed_tailoring_cmd() -> None:
    """Re-publish tailor missions for failed matches with retry budget left."""
    from app.tasks.campaign_tasks import requeue_failed_tailoring

    _configure()
    with QueueClient() as queue, SessionLocal() as db:
        requeued = requeue_failed_tailoring(db, queue)
    typer.echo(json.dumps({"requeued": requeued}, indent=2))


if __name__ == "__main__":
    app()
