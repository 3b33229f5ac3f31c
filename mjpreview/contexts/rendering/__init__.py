"""
Rendering Context

Responsibilities:
- Expands MJML templates with context data
- Runs the localization pass over expanded markup
- Compiles MJML to HTML and rewrites local resource links
- Turns pipeline failures into displayable diagnostics with source excerpts

Owns: Render pipeline, markup compiler integration, error reports
Never: Tracks documents, previews, or cache state
"""

from mjpreview.contexts.rendering.compiler import (
    CompilerOptions,
    CompilerOutput,
    MarkupDiagnostic,
    MjmlCliCompiler,
)
from mjpreview.contexts.rendering.diagnostics import format_failure, format_not_mjml
from mjpreview.contexts.rendering.localization import JinjaLocalizationStage, LocalizationStage
from mjpreview.contexts.rendering.pipeline import RenderPipeline
from mjpreview.contexts.rendering.results import (
    CompileError,
    FailureKind,
    RenderContext,
    RenderFailure,
    RenderResult,
    RenderSuccess,
)

__all__ = [
    # Pipeline
    "RenderPipeline",
    "RenderContext",
    "RenderResult",
    "RenderSuccess",
    "RenderFailure",
    "FailureKind",
    "CompileError",
    # Stages
    "JinjaLocalizationStage",
    "LocalizationStage",
    "MjmlCliCompiler",
    "CompilerOptions",
    "CompilerOutput",
    "MarkupDiagnostic",
    # Diagnostics
    "format_failure",
    "format_not_mjml",
]
