"""
Template expansion (render stage 1).

Expands the raw MJML source as a Jinja2 template with strict semantics:
undefined variables are errors and interpolated values are HTML-escaped.
"""

from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateSyntaxError

from mjpreview.contexts.rendering.exceptions import TemplateExpansionError

# Filename Jinja2 assigns to templates compiled from a string
TEMPLATE_FILENAME = "<template>"


def build_environment(source_path: str = "") -> Environment:
    """
    Create a fresh Jinja2 environment for one render attempt.

    Includes and imports resolve relative to the source document's directory.
    Nothing is cached between attempts, so edits to included partials are
    always picked up.

    Args:
        source_path: Path of the document being rendered ("" if unsaved)

    Returns:
        Jinja2 Environment with autoescaping and StrictUndefined
    """
    loader = None
    if source_path:
        loader = FileSystemLoader(str(Path(source_path).parent))

    return Environment(
        loader=loader,
        autoescape=True,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        cache_size=0,
    )


def _template_line(error: BaseException) -> Optional[int]:
    """
    Recover the source line from a template runtime error.

    Jinja2 rewrites tracebacks so that frames executing template code report
    the template's filename and the line in the template source. The
    innermost such frame of the root template is the offending line.
    """
    line = None
    tb = error.__traceback__
    while tb is not None:
        if tb.tb_frame.f_code.co_filename == TEMPLATE_FILENAME:
            line = tb.tb_lineno
        tb = tb.tb_next
    return line


def expand_template(
    source_text: str,
    context_data: Mapping[str, Any],
    source_path: str = "",
    defaults: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Expand a template source into MJML text.

    Args:
        source_text: Template source as authored
        context_data: Variables available to the template
        source_path: Path of the document (for relative includes)
        defaults: Variables merged underneath context_data (context_data wins)

    Returns:
        Expanded text

    Raises:
        TemplateExpansionError: On syntax errors, undefined variables, or any
            exception raised while evaluating the template. The line number is
            relative to source_text.
    """
    env = build_environment(source_path)
    data = {**(defaults or {}), **context_data}

    try:
        template = env.from_string(source_text)
    except TemplateSyntaxError as e:
        raise TemplateExpansionError(e.message or str(e), line=e.lineno, original_error=e) from e

    try:
        return template.render(data)
    except TemplateSyntaxError as e:
        # Syntax errors inside included templates surface at render time
        raise TemplateExpansionError(
            e.message or str(e), line=_template_line(e), original_error=e
        ) from e
    except Exception as e:
        raise TemplateExpansionError(str(e), line=_template_line(e), original_error=e) from e
