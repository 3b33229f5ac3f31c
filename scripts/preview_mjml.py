#!/usr/bin/env python3
"""
MJML Render and Preview CLI

Renders MJML templates through the full pipeline (template expansion,
localization, MJML compilation) and keeps an HTML preview in sync with a
template while it is being edited.

Commands:
    render - Render a template once
    watch  - Re-render a template into a preview file whenever it is saved

Examples:\n

    preview_mjml.py render emails/welcome.mjml                      # HTML to stdout

    preview_mjml.py render emails/welcome.mjml -o welcome.html      # HTML to file

    preview_mjml.py render emails/welcome.mjml -c '{"name": "Ada"}' # With context data

    preview_mjml.py watch emails/welcome.mjml -o preview.html       # Live preview file
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from mjpreview.contexts.preview import (
    PreviewSessionManager,
    SourceDocumentIdentity,
    load_preview_settings,
)
from mjpreview.contexts.preview.logger import setup_preview_logger
from mjpreview.contexts.rendering import (
    JinjaLocalizationStage,
    RenderContext,
    RenderPipeline,
    format_failure,
)
from mjpreview.contexts.rendering.links import resolve_local_resource
from mjpreview.contexts.rendering.logger import setup_rendering_logger
from mjpreview.utils import now

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))

app = typer.Typer(
    help="Render MJML templates and keep HTML previews in sync",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def parse_context(context: Optional[str]) -> dict:
    """Parse --context as a JSON object or a path to a JSON file."""
    if not context:
        return {}
    if context.lstrip().startswith("{"):
        text = context
    else:
        text = Path(context).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        typer.secho(f"Error: --context is not valid JSON: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if not isinstance(data, dict):
        typer.secho("Error: --context must be a JSON object\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return data


class FilePreviewHost:
    """Preview host that writes every displayed preview to one HTML file."""

    def __init__(self, output: Path):
        self.output = output
        self.display_count = 0

    def request_display(self, artifact_id: str, content: str) -> None:
        self.output.write_text(content, encoding="utf-8")
        self.display_count += 1
        typer.echo(f"  Preview updated ({self.display_count}): {self.output}")

    def resolve_local_resource(self, source_path: str, link: str) -> str:
        return resolve_local_resource(source_path, link)

    def show_source(self, source_id) -> None:
        pass


@app.command("render")
def render_command(
    template: Annotated[
        Path,
        typer.Argument(help="MJML template to render", exists=True, dir_okay=False),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write HTML here instead of stdout"),
    ] = None,
    context: Annotated[
        Optional[str],
        typer.Option("--context", "-c", help="Template variables as JSON object or JSON file"),
    ] = None,
    settings_path: Annotated[
        Optional[Path],
        typer.Option("--settings", "-s", help="Preview settings YAML (default: PREVIEW_SETTINGS_PATH)"),
    ] = None,
    locale: Annotated[
        Optional[str],
        typer.Option("--locale", "-l", help="Target locale (overrides settings)"),
    ] = None,
    minify: Annotated[
        bool,
        typer.Option("--minify", help="Minify the compiled HTML"),
    ] = False,
    no_beautify: Annotated[
        bool,
        typer.Option("--no-beautify", help="Do not beautify the compiled HTML"),
    ] = False,
):
    """
    Render an MJML template once.

    With --output, a failed render writes the HTML error report there instead
    of the markup. Exits with code 1 if any pipeline stage fails.

    Examples:\n

        $ preview_mjml.py render welcome.mjml -o welcome.html

        $ preview_mjml.py render welcome.mjml --locale en --minify
    """
    log_file = setup_rendering_logger(LOGS_PATH / f"render_{now()}")
    try:
        settings = load_preview_settings(settings_path)
    except ValueError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    data = parse_context(context)

    pipeline = RenderPipeline(
        localization=JinjaLocalizationStage(settings.locale_dir),
        context_defaults=settings.context_defaults,
    )
    source_text = template.read_text(encoding="utf-8")
    ctx = RenderContext(
        source_text=source_text,
        context_data=data,
        source_path=str(template.resolve()),
        minify=minify or settings.minify,
        beautify=settings.beautify and not no_beautify,
        locale=locale or settings.locale,
    )
    result = pipeline.render(ctx)

    if result.ok:
        if output:
            output.write_text(result.markup, encoding="utf-8")
            typer.secho(f"✓ Rendered {template} -> {output}", fg=typer.colors.GREEN, bold=True, err=True)
        else:
            typer.echo(result.markup)
        raise typer.Exit(code=0)

    typer.secho(f"✗ Render failed: {result.message}", fg=typer.colors.RED, bold=True, err=True)
    for error in result.errors[:10]:
        where = f"line {error.line}" if error.line is not None else "unknown line"
        typer.secho(f"  - ({where}) {error.message}", fg=typer.colors.RED, err=True)
    if len(result.errors) > 10:
        typer.echo(f"  ... and {len(result.errors) - 10} more", err=True)

    if output:
        output.write_text(format_failure(result, base_href=template.resolve().as_uri()), encoding="utf-8")
        typer.echo(f"  Error report: {output}", err=True)
    typer.echo(f"  Log: {log_file}", err=True)
    raise typer.Exit(code=1)


async def watch_template(
    manager: PreviewSessionManager, template: Path, interval: float, max_updates: Optional[int]
) -> None:
    source_id = SourceDocumentIdentity.from_path(template)
    path = str(template.resolve())

    await manager.preview(source_id, template.read_text(encoding="utf-8"), path=path)
    last_mtime = template.stat().st_mtime
    updates = 0

    try:
        while max_updates is None or updates < max_updates:
            await asyncio.sleep(interval)
            if not template.exists():
                typer.secho(f"{template} was removed, stopping", fg=typer.colors.YELLOW, err=True)
                break
            mtime = template.stat().st_mtime
            if mtime == last_mtime:
                continue
            last_mtime = mtime
            updates += 1
            await manager.document_saved(source_id, template.read_text(encoding="utf-8"))
    finally:
        manager.document_closed(source_id)


@app.command("watch")
def watch_command(
    template: Annotated[
        Path,
        typer.Argument(help="MJML template to watch", exists=True, dir_okay=False),
    ],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Preview HTML file to keep up to date"),
    ] = Path("preview.html"),
    context: Annotated[
        Optional[str],
        typer.Option("--context", "-c", help="Template variables as JSON object or JSON file"),
    ] = None,
    settings_path: Annotated[
        Optional[Path],
        typer.Option("--settings", "-s", help="Preview settings YAML (default: PREVIEW_SETTINGS_PATH)"),
    ] = None,
    interval: Annotated[
        float,
        typer.Option("--interval", "-i", help="Seconds between checks for changes", min=0.05),
    ] = 0.5,
    max_updates: Annotated[
        Optional[int],
        typer.Option("--max-updates", help="Stop after this many re-renders"),
    ] = None,
):
    """
    Keep an HTML preview of a template up to date.

    Renders once, then re-renders every time the file is saved. Render errors
    are written to the preview file as an HTML error report. Stop with Ctrl+C.

    Examples:\n

        $ preview_mjml.py watch welcome.mjml -o preview.html

        $ preview_mjml.py watch welcome.mjml -c context.json --interval 1
    """
    try:
        settings = load_preview_settings(settings_path)
    except ValueError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    log_file = setup_preview_logger(
        LOGS_PATH / f"preview_{now()}", settings_path or os.getenv("PREVIEW_SETTINGS_PATH")
    )

    typer.secho(f"\nWatching: {template}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"Preview: {output}")
    typer.echo(f"Log: {log_file}")
    typer.echo("")

    manager = PreviewSessionManager(
        FilePreviewHost(output), settings=settings, context_data=parse_context(context)
    )
    try:
        asyncio.run(watch_template(manager, template, interval, max_updates))
    except KeyboardInterrupt:
        typer.echo("\nStopped.")
    finally:
        manager.teardown()
    raise typer.Exit(code=0)


if __name__ == "__main__":
    app()
