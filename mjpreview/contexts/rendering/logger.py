"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from utils.logger directly.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from mjpreview.utils.logger import setup_logger as _setup_logger

load_dotenv()

CONTEXT_PREFIX = "[render]"


def setup_rendering_logger(log_dir: Path) -> Path:
    """
    Setup logger for rendering context.

    Configures loguru with provenance tracking and rendering-specific context.

    Args:
        log_dir: Directory for this rendering session

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={"MJML compiler": os.getenv("MJML_COMPILER", "mjml")},
    )


# Wrapper functions with automatic [render] prefix


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [render] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level rendering-specific logging helpers


def log_render_start(source_path: str, locale: str, minify: bool, beautify: bool) -> None:
    """Log start of a render attempt."""
    _log_debug(f"Rendering {source_path or '<unsaved document>'}")
    _log_debug(f"  Locale: {locale}, minify: {minify}, beautify: {beautify}")


def log_stage_failure(stage: str, error: Exception) -> None:
    """Log an exception that stopped the pipeline at the given stage."""
    _log_warning(f"{stage} failed: {error}")


def log_render_result(source_path: str, result, elapsed_time: float) -> None:
    """
    Log render result with diagnostics.

    Args:
        source_path: Path of the rendered document
        result: RenderResult from RenderPipeline.render()
        elapsed_time: Time taken to render
    """
    name = source_path or "<unsaved document>"
    if result.ok:
        _log_success(f"{name}: rendered {len(result.markup)} chars ({elapsed_time:.2f}s)")
        return

    _log_error(f"{name}: {len(result.errors)} errors ({elapsed_time:.2f}s)")
    error_limit = 5
    for i, err in enumerate(result.errors[:error_limit], 1):
        where = f"line {err.line}" if err.line is not None else "unknown line"
        _log_error(f"  Error {i} ({where}): {err.message}")
    if len(result.errors) > error_limit:
        _log_error(f"  ... and {len(result.errors) - error_limit} more errors")

    # Use opt(raw=True) so multi-line payloads keep their formatting
    if result.detail:
        logger.opt(raw=True).debug(f"\n{'=' * 80}\nERROR DETAIL:\n{'=' * 80}\n{result.detail}\n")
