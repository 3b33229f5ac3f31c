"""
Preview context logger.

Provides logging interface for preview context with automatic [preview] prefix.
All preview modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path

from loguru import logger

from mjpreview.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[preview]"


def setup_preview_logger(log_dir: Path, settings_path: Path = None) -> Path:
    """
    Setup logger for preview context.

    Args:
        log_dir: Directory for this preview session
        settings_path: Settings file in use (logged in the provenance header)

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="preview",
        log_dir=log_dir,
        extra_provenance={"Settings": settings_path or "defaults"},
    )


# Wrapper functions with automatic [preview] prefix


def _log_info(message: str) -> None:
    """Log info message with [preview] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [preview] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [preview] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [preview] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level preview-specific logging helpers


def log_binding(source_id, artifact_id: str) -> None:
    """Log a document being bound to its preview."""
    _log_info(f"Bound {source_id} -> preview {artifact_id}")


def log_unbinding(source_id, artifact_id: str) -> None:
    """Log a document released from its preview."""
    _log_info(f"Released {source_id} (preview {artifact_id})")


def log_invalidation(source_id, reason: str) -> None:
    _log_debug(f"Invalidated {source_id} ({reason})")


def log_host_failure(action: str, source_id) -> None:
    """Log an exception raised by the host while handling a preview action."""
    logger.opt(exception=True).error(f"{CONTEXT_PREFIX} Host failed to {action} for {source_id}")
