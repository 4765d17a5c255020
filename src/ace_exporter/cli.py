"""CLI entry point for ace-exporter."""

import asyncio
import logging

import click
import uvicorn

from .export import ExportRequest
from .index import SessionNotIndexedError
from .service import SessionService

MODE_CHOICE = click.Choice(["clean", "develop"])


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """Browse and export Codex agent conversations as Markdown."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)


def _service(ctx: click.Context) -> SessionService:
    service = ctx.obj.get("service")
    if service is None:
        service = ctx.obj["service"] = SessionService()
    return service


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting ace-exporter on http://{host}:{port}")
    uvicorn.run("ace_exporter.server:app", host=host, port=port, reload=False)


@main.command()
@click.option("--limit", default=50, show_default=True, help="Sessions to list.")
@click.pass_context
def scan(ctx: click.Context, limit: int):
    """Scan data roots and list sessions, newest first."""
    result = asyncio.run(_service(ctx).scan_sessions())
    for session in result.sessions[:limit]:
        flags = "".join([
            "P" if session.partial else "-",
            "A" if session.archived else "-",
            "W" if session.in_workspace else "-",
        ])
        click.echo(
            f"{session.updated_at[:19]}  {flags}  {session.session_id}  "
            f"[{session.project_name}] {session.title or ''}"
        )
    stats = result.stats
    click.echo(
        f"{len(result.sessions)} sessions ({stats.total_files} files, "
        f"{stats.parsed_files} parsed, {stats.cache_hits} cached, {stats.duration_ms} ms)"
    )


async def _scan_then(service: SessionService, coro_factory):
    await service.scan_sessions()
    return await coro_factory()


@main.command()
@click.argument("session_id")
@click.option("--mode", type=MODE_CHOICE, default="clean", show_default=True)
@click.option("--detail", type=click.Choice(["preview", "full"]), default="full", show_default=True)
@click.pass_context
def show(ctx: click.Context, session_id: str, mode: str, detail: str):
    """Print the Markdown transcript of a session."""
    service = _service(ctx)
    try:
        bundle = asyncio.run(_scan_then(
            service, lambda: service.get_markdown_bundle(session_id, mode, detail)
        ))
    except SessionNotIndexedError as e:
        raise click.ClickException(str(e))
    click.echo(bundle.markdown, nl=False)


@main.command()
@click.argument("session_ids", nargs=-1, required=True)
@click.option("--mode", type=MODE_CHOICE, default=None, help="Defaults to the saved export mode.")
@click.option(
    "--strategy",
    type=click.Choice(["single_file", "one_file_per_session"]),
    default="single_file",
    show_default=True,
)
@click.option("--output", "-o", default=None, help="Destination file or directory.")
@click.option("--clipboard", is_flag=True, help="Also copy the Markdown to the clipboard.")
@click.pass_context
def export(ctx: click.Context, session_ids: tuple[str, ...], mode: str | None, strategy: str,
           output: str | None, clipboard: bool):
    """Export one or more sessions as Markdown."""
    service = _service(ctx)
    request = ExportRequest(
        session_ids=list(session_ids),
        mode=mode or service.settings_store.get().default_export_mode,
        strategy=strategy,
        destination_path=output,
        copy_to_clipboard=clipboard,
    )
    try:
        result = asyncio.run(_scan_then(service, lambda: service.export_markdown(request)))
    except SessionNotIndexedError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise click.ClickException(f"Export failed: {e}")

    for path in result.written:
        click.echo(f"Wrote {path}")
    if result.copied:
        click.echo("Copied to clipboard")
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


@main.command()
@click.option("--mode", type=MODE_CHOICE, default="clean", show_default=True)
@click.pass_context
def latest(ctx: click.Context, mode: str):
    """Export the most recently updated session."""
    try:
        result = asyncio.run(_service(ctx).quick_export_latest(mode))
    except OSError as e:
        raise click.ClickException(f"Export failed: {e}")

    if result.path:
        click.echo(f"Wrote {result.path}")
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)
