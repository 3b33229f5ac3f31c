"""
Integration tests for the preview_mjml.py command-line interface.
"""

import importlib.util
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mjpreview.contexts.rendering import compiler as compiler_module

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "preview_mjml.py"

skip_on_windows = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script as compiler")


def load_cli():
    spec = importlib.util.spec_from_file_location("preview_mjml", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """CLI module with logs in tmp_path and a pass-through shell script as mjml."""
    fake = tmp_path / "fake-mjml"
    fake.write_text("#!/bin/sh\ncat\n")
    fake.chmod(0o755)
    monkeypatch.setattr(compiler_module, "MJML_COMPILER", str(fake))
    monkeypatch.delenv("PREVIEW_SETTINGS_PATH", raising=False)

    module = load_cli()
    monkeypatch.setattr(module, "LOGS_PATH", tmp_path / "logs")
    return module


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "welcome.mjml"
    path.write_text("<mjml><mj-text>Hi {{ name }}</mj-text></mjml>")
    return path


@pytest.mark.integration
@skip_on_windows
def test_render_to_file(cli, runner, template, tmp_path):
    """Test rendering a template to an output file."""
    output = tmp_path / "welcome.html"

    result = runner.invoke(cli.app, ["render", str(template), "-o", str(output), "-c", '{"name": "Ada"}'])

    assert result.exit_code == 0, result.output
    assert output.read_text() == "<mjml><mj-text>Hi Ada</mj-text></mjml>"


@pytest.mark.integration
@skip_on_windows
def test_render_context_from_file(cli, runner, template, tmp_path):
    """Test reading the render context from a JSON file."""
    context = tmp_path / "context.json"
    context.write_text('{"name": "Grace"}')
    output = tmp_path / "welcome.html"

    result = runner.invoke(cli.app, ["render", str(template), "-o", str(output), "-c", str(context)])

    assert result.exit_code == 0, result.output
    assert "Hi Grace" in output.read_text()


@pytest.mark.integration
@skip_on_windows
def test_render_failure_writes_error_report(cli, runner, template, tmp_path):
    """Test that a failed render writes the error page and exits 1."""
    output = tmp_path / "welcome.html"

    result = runner.invoke(cli.app, ["render", str(template), "-o", str(output)])

    assert result.exit_code == 1
    assert "&#39;name&#39; is undefined" in output.read_text()


@pytest.mark.integration
def test_render_rejects_invalid_context(cli, runner, template):
    """Test error handling for malformed context JSON."""
    result = runner.invoke(cli.app, ["render", str(template), "-c", "{not json"])

    assert result.exit_code == 1


@pytest.mark.integration
@skip_on_windows
def test_watch_writes_initial_preview(cli, runner, template, tmp_path):
    """Test that watch writes the first preview before polling."""
    output = tmp_path / "preview.html"

    result = runner.invoke(
        cli.app,
        ["watch", str(template), "-o", str(output), "-c", '{"name": "Ada"}', "--max-updates", "0"],
    )

    assert result.exit_code == 0, result.output
    assert output.read_text() == "<mjml><mj-text>Hi Ada</mj-text></mjml>"
