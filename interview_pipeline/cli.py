"""
Command-line interface for the mock interview pipeline.

This module provides commands for inspecting the stage catalog and
configuration, looking up a candidate's sessions and running the API server.
"""
import asyncio
import logging
from typing import Optional

import click

from interview_pipeline.core.errors import PipelineError
from interview_pipeline.core.stage_catalog import load_stage_catalog
from interview_pipeline.services.session_store import MongoPipelineStore
from interview_pipeline.services.session_tracker import SessionTracker
from interview_pipeline.utils.config import SYSTEM_NAME, get_db_config, get_server_config, log_config
from interview_pipeline.utils.constants import DEFAULT_PAST_SESSIONS_LIMIT
from interview_pipeline.utils.db import connect_database

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Mock Interview Pipeline - staged candidate interviews"""
    pass


@cli.command()
@click.option('--catalog', 'catalog_path', help='JSON stage catalog to load instead of the configured one')
def stages(catalog_path: Optional[str] = None) -> None:
    """List the interview stages in order."""
    try:
        catalog = load_stage_catalog(catalog_path)
    except PipelineError as e:
        raise click.ClickException(str(e))

    print("\n" + "=" * 50)
    print(f"  {SYSTEM_NAME.upper()} STAGES")
    print("=" * 50)
    for stage in catalog:
        graded = f"{stage.question_count} questions, pass at {stage.passing_score:g}" if stage.is_assessed else "acknowledged"
        print(f"{stage.order}. {stage.name} [{stage.stage_type}] - {graded}")
        if stage.requires_slot_booking:
            print("   * requires slot booking")
    print("=" * 50 + "\n")


@cli.command('show-config')
def show_config() -> None:
    """Log the current configuration (secrets are masked)."""
    log_config()


@cli.command()
@click.option('--host', default=None, help='Host to bind the server to')
@click.option('--port', default=None, type=int, help='Port to bind the server to')
def serve(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API server."""
    from interview_pipeline.server import start_server

    server_config = get_server_config()
    start_server(host or server_config["host"], port or server_config["port"])


async def _show_candidate_sessions(candidate_id: str, limit: int) -> None:
    db_config = get_db_config()
    client, database = await connect_database(db_config["uri"], db_config["database"])
    try:
        tracker = SessionTracker(MongoPipelineStore(database, db_config), load_stage_catalog())
        active = await tracker.get_active_session(candidate_id)
        past = await tracker.get_past_sessions(candidate_id, limit=limit)

        print(f"\nCandidate: {candidate_id}")
        print("=" * 50)
        if active:
            progress = await tracker.get_progress(active.session_id)
            print(f"Active session: {active.session_id} (version {active.version})")
            for item in progress.stages:
                score = f" score={item.result.ai_score:g}" if item.result else ""
                print(f"  {item.stage.order}. {item.stage.name}: {item.state}{score}")
        else:
            print("No active session.")

        print("-" * 30)
        if not past:
            print("No past sessions.")
        for session in past:
            score = f"{session.overall_score:.1f}" if session.overall_score is not None else "-"
            finished = session.completed_at.strftime('%Y-%m-%d %H:%M:%S') if session.completed_at else "-"
            print(f"{session.session_id}  {session.status:<10} score={score}  finished={finished}")
        print("=" * 50 + "\n")
    finally:
        client.close()


@cli.command()
@click.argument('candidate_id')
@click.option('--limit', default=DEFAULT_PAST_SESSIONS_LIMIT, show_default=True, help='Number of past sessions to show')
def session(candidate_id: str, limit: int) -> None:
    """Show a candidate's active session progress and past sessions."""
    try:
        asyncio.run(_show_candidate_sessions(candidate_id, limit))
    except PipelineError as e:
        logger.error(f"Could not load sessions for {candidate_id}: {e}")
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
