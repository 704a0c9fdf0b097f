from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

import typer
from pydantic import BaseModel

from .models.contracts import (
    ChatConfig,
    DocumentFilter,
    SearchQuery,
    UploadFields,
    UploadFile,
)
from .sdk import DEFAULT_GATEWAY_URL, ChatSession, KnowledgeClient, RequestFailure, validate_upload
from .shared.logging import setup_logging

cli = typer.Typer(help="Operator tools for the KLive knowledge base")

T = TypeVar("T", bound=BaseModel)


@cli.callback()
def main(
    ctx: typer.Context,
    gateway_url: str = typer.Option(
        DEFAULT_GATEWAY_URL, envvar="KLIVE_GATEWAY_URL", help="Gateway base URL including prefix"
    ),
    timeout: float = typer.Option(30.0, envvar="KLIVE_TIMEOUT"),
    log_level: str = typer.Option("WARNING", envvar="LOG_LEVEL"),
) -> None:
    setup_logging(log_level)
    ctx.obj = {"gateway_url": gateway_url, "timeout": timeout}


def _client(ctx: typer.Context) -> KnowledgeClient:
    return KnowledgeClient(base_url=ctx.obj["gateway_url"], timeout=ctx.obj["timeout"])


def _echo(model: BaseModel) -> None:
    typer.echo(json.dumps(model.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))


def _run(ctx: typer.Context, call: Callable[[KnowledgeClient], T]) -> T:
    with _client(ctx) as client:
        try:
            return call(client)
        except RequestFailure as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc


@cli.command()
def health(ctx: typer.Context) -> None:
    """Show backend dependency health."""
    _echo(_run(ctx, lambda client: client.get_health()))


@cli.command()
def documents(
    ctx: typer.Context,
    tenant: Optional[str] = typer.Option(None, "--tenant"),
    status: Optional[str] = typer.Option(None, "--status"),
    category: Optional[str] = typer.Option(None, "--category"),
) -> None:
    """List documents, optionally filtered."""
    doc_filter = DocumentFilter(tenant_slug=tenant, status=status, category=category)
    _echo(_run(ctx, lambda client: client.list_documents(doc_filter)))


@cli.command()
def document(ctx: typer.Context, document_id: str) -> None:
    """Show a single document."""
    _echo(_run(ctx, lambda client: client.get_document(document_id)))


@cli.command()
def upload(
    ctx: typer.Context,
    title: str = typer.Option(..., "--title"),
    tenant: str = typer.Option(..., "--tenant"),
    category: str = typer.Option("general", "--category"),
    content: Optional[str] = typer.Option(None, "--content"),
    file: Optional[Path] = typer.Option(None, "--file", exists=True, dir_okay=False, readable=True),
) -> None:
    """Upload inline content or a file. A file wins when both are given."""
    upload_file = None
    if file is not None:
        if content:
            typer.echo("Both --content and --file given; uploading the file", err=True)
        content_type = mimetypes.guess_type(file.name)[0] or "application/octet-stream"
        upload_file = UploadFile(filename=file.name, data=file.read_bytes(), content_type=content_type)
    fields = UploadFields(
        title=title,
        category=category,
        tenant_slug=tenant,
        content=content,
        file=upload_file,
    )
    try:
        validate_upload(fields)
    except RequestFailure as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    _echo(_run(ctx, lambda client: client.upload_document(fields)))


@cli.command()
def delete(ctx: typer.Context, document_id: str) -> None:
    """Delete a document."""
    _echo(_run(ctx, lambda client: client.delete_document(document_id)))


@cli.command()
def reindex(ctx: typer.Context, document_id: str) -> None:
    """Queue a document for reindexing."""
    _echo(_run(ctx, lambda client: client.reindex_document(document_id)))


@cli.command()
def search(
    ctx: typer.Context,
    query: str,
    tenant: str = typer.Option(..., "--tenant"),
    category: Optional[str] = typer.Option(None, "--category"),
    top_k: Optional[int] = typer.Option(None, "--top-k", min=1),
) -> None:
    """Search the vector store."""
    params = SearchQuery(query=query, tenant_slug=tenant, category=category, top_k=top_k)
    _echo(_run(ctx, lambda client: client.search(params)))


@cli.command()
def chat(
    ctx: typer.Context,
    message: str,
    tenant: str = typer.Option(..., "--tenant"),
    language: Optional[str] = typer.Option(None, "--language"),
    response_style: Optional[str] = typer.Option(None, "--style"),
    confidence_threshold: Optional[float] = typer.Option(None, "--threshold", min=0.0, max=1.0),
    ai_display_name: Optional[str] = typer.Option(None, "--ai-name"),
    category: List[str] = typer.Option([], "--category"),
    interactive: bool = typer.Option(False, "--interactive", "-i"),
) -> None:
    """Send a chat message; with --interactive keep the conversation going."""
    config = ChatConfig(
        language=language,
        response_style=response_style,
        confidence_threshold=confidence_threshold,
        ai_display_name=ai_display_name,
        enabled_categories=category or None,
    )
    with _client(ctx) as client:
        session = ChatSession(client, tenant, config=config)
        next_message: Optional[str] = message
        while next_message:
            try:
                result = session.send(next_message)
            except RequestFailure as exc:
                typer.echo(str(exc), err=True)
                raise typer.Exit(code=1) from exc
            _echo(result)
            if not interactive:
                break
            next_message = typer.prompt("you", default="", show_default=False).strip()


if __name__ == "__main__":
    cli()
