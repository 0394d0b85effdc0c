"""Command line interface for serving and inspecting storyflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Optional

import typer

from .auth import TokenValidator, issue_token
from .config import StoryflowConfig, load_config
from .contracts import WorkflowStatus
from .engine import WorkflowEngine
from .errors import ConflictError, NotFoundError, TransientError
from .integrations import JiraClient
from .persistence import WorkflowRepository, get_repository
from .retrieval import InMemoryVectorIndex, build_retriever
from .service import WorkflowService
from .workflows import build_registry

app = typer.Typer(help="CLI for storyflow workflows")

workflow_app = typer.Typer(help="Commands for inspecting workflows")
app.add_typer(workflow_app, name="workflow")

documents_app = typer.Typer(help="Commands for project documents used during clarification")
app.add_typer(documents_app, name="documents")

CONFIG_OPTION = typer.Option(None, "--config", help="Path to config.yaml")


@app.callback()
def main() -> None:
    """storyflow CLI entry point."""
    pass


def build_service(
    config: StoryflowConfig, repository: Optional[WorkflowRepository] = None
) -> WorkflowService:
    """Wire repository, agents, engine and tracker from configuration."""
    repository = repository or get_repository(config.database_url, config)
    retriever = build_retriever(config.retrieval, config.database_url)
    registry = build_registry(config.llm.model, config.llm, retriever)
    engine = WorkflowEngine(repository, registry, config.engine)
    tracker = JiraClient(config.jira) if config.jira.configured else None
    return WorkflowService(engine, tracker, retriever)


def _config(config_path: Optional[Path]) -> StoryflowConfig:
    return load_config(str(config_path) if config_path else None)


def _repository(config_path: Optional[Path]) -> WorkflowRepository:
    config = _config(config_path)
    return get_repository(config.database_url, config)


@app.command("serve")
def serve(
    config_path: Optional[Path] = CONFIG_OPTION,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """
    Run the HTTP API.

    Example:
        storyflow serve --config ./config.yaml --port 8080
    """
    import uvicorn

    from .api import create_app

    config = _config(config_path)
    logging.basicConfig(
        level=config.server.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not config.auth.jwt_secret:
        typer.secho("Warning: no jwt_secret configured, every request will be rejected", fg=typer.colors.YELLOW)
    api = create_app(build_service(config), TokenValidator(config.auth))
    uvicorn.run(api, host=host or config.server.host, port=port or config.server.port)


@app.command("token")
def token(
    user_id: str,
    email: Optional[str] = None,
    ttl: int = typer.Option(3600, help="Lifetime in seconds"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Issue a bearer token for local development."""
    config = _config(config_path)
    if not config.auth.jwt_secret:
        typer.secho("No jwt_secret configured", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(issue_token(config.auth, user_id, email=email, ttl=ttl))


@workflow_app.command("list")
def workflow_list(
    project_id: Optional[str] = None,
    status: Optional[WorkflowStatus] = None,
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    List workflows with their current step and status.

    Example:
        storyflow workflow list --project-id p1 --status in_progress
        # Output: 1f0c...    story    review_approval    in_progress
    """
    repo = _repository(config_path)
    workflows = asyncio.run(repo.find_by(project_id=project_id, status=status))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in sorted(workflows, key=lambda w: w.created_at):
        typer.echo(f"{wf.id}\t{wf.kind.value}\t{wf.current_step}\t{wf.status.value}")


@workflow_app.command("show")
def workflow_show(
    workflow_id: str,
    as_json: bool = typer.Option(False, "--json"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    Show a workflow's requirements and per-step progress.

    Example:
        storyflow workflow show 1f0c...
        # Output: Workflow 1f0c... (story): in_progress at review_approval
        #         - requirements_analysis: 2 iteration(s), done
        #         - story_creation: 1 iteration(s), done
    """
    repo = _repository(config_path)
    wf = asyncio.run(repo.find_by_id(workflow_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    if as_json:
        typer.echo(wf.model_dump_json(indent=2))
        return
    typer.echo(f"Workflow {wf.id} ({wf.kind.value}): {wf.status.value} at {wf.current_step}")
    typer.echo(f"Requirements: {json.dumps(wf.context.requirements, sort_keys=True)}")
    for name, record in wf.context.steps.items():
        if record.error:
            typer.echo(f"- {name}: {record.error} (at {record.step})")
            continue
        state = "waiting for input" if record.needs_input else "done"
        typer.echo(f"- {name}: {record.iterations} iteration(s), {state}")
        if record.needs_input and record.prompt:
            typer.echo(f"    prompt: {record.prompt}")


@workflow_app.command("fail")
def workflow_fail(
    workflow_id: str,
    reason: str = typer.Option(..., "--reason", help="Why the workflow is abandoned"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Mark a stuck workflow as failed."""
    repo = _repository(config_path)
    engine = WorkflowEngine(repo, registry={})
    try:
        wf = asyncio.run(engine.fail(workflow_id, reason))
    except (NotFoundError, ConflictError) as e:
        typer.secho(e.message, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.id}: {wf.status.value}")


@documents_app.command("add")
def documents_add(
    project_id: str,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    title: Optional[str] = None,
    document_id: Optional[str] = None,
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """
    Chunk, embed and index a plain-text project document.

    Example:
        storyflow documents add proj-1 ./docs/auth-policy.md --config ./config.yaml
        # Output: Indexed 4 chunk(s) of auth-policy.md as 9b2e...
    """
    config = _config(config_path)
    retriever = build_retriever(config.retrieval, config.database_url)
    if retriever is None:
        typer.secho("Document retrieval is not configured", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if isinstance(retriever.index, InMemoryVectorIndex):
        typer.secho(
            "Warning: no PostgreSQL database configured, chunks are kept in memory only",
            fg=typer.colors.YELLOW,
        )
    content = path.read_text(encoding="utf-8")
    document_id = document_id or str(uuid.uuid4())
    metadata = {"title": title or path.name}
    try:
        chunks = asyncio.run(retriever.ingest(content, project_id, document_id, metadata))
    except TransientError as e:
        typer.secho(e.message, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Indexed {chunks} chunk(s) of {path.name} as {document_id}")


if __name__ == "__main__":
    app()
