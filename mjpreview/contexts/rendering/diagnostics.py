"""
Diagnostics formatting for failed renders.

Turns a RenderFailure into an HTML document shown in place of the preview:

- Structured compiler errors: one block per error, each with an excerpt of
  the compiler input around the offending line (line highlighted)
- Generic errors (template expansion, localization, synthesized): the
  message plus a verbatim detail payload
- Scalar errors: the message as plain text

The formatter never raises. If building a document fails for any reason,
a plain fallback document is returned instead.
"""

from typing import List, Optional, Sequence, Tuple, Union

from mjpreview.contexts.rendering.links import create_command_uri
from mjpreview.contexts.rendering.logger import _log_warning
from mjpreview.contexts.rendering.results import CompileError, FailureKind, RenderFailure
from mjpreview.utils.html import escape_html

# Excerpt spans 3 lines before the offending line and 2 lines after it
LINES_BEFORE = 3
LINES_AFTER = 2

NOT_MJML_MESSAGE = "Active editor doesn't show a MJML document."

BODY_STYLE = "background:#AD2222; padding: 20px; color: white"
CODE_STYLE = (
    "font-family: monospace; margin-top: 0.5rem; color: #322; "
    "background-color: #EEE; padding: 1rem; border-radius: 4px"
)
HIGHLIGHT_STYLE = "background-color: #ff8787"


def error_window(lines: Sequence[str], line: int) -> Tuple[int, List[str], Optional[int]]:
    """
    Select the excerpt shown for an error at a 1-based line.

    The window is zero-based indices [line-4, line+2), clamped to the
    available lines.

    Args:
        lines: Source lines
        line: 1-based line number reported for the error

    Returns:
        (index of the first excerpt line, excerpt lines, index of the
        offending line within the excerpt or None if it is out of range)

    Examples:
        >>> error_window(["a", "b", "c", "d"], 1)
        (0, ['a', 'b', 'c'], 0)
    """
    start = max(0, line - 1 - LINES_BEFORE)
    end = max(start, min(len(lines), line + LINES_AFTER))
    window = list(lines[start:end])

    offending = line - 1
    marked = offending - start if start <= offending < end else None
    return start, window, marked


def _excerpt_html(source_text: str, line: int) -> str:
    _, window, marked = error_window(source_text.split("\n"), line)
    rows = []
    for index, text in enumerate(window):
        style = "white-space: pre-wrap;"
        if index == marked:
            style += HIGHLIGHT_STYLE
        rows.append(f'<div style="{style}">{escape_html(text)}</div>')
    return "".join(rows)


def _line_heading(error: CompileError) -> str:
    """Clickable 'Line N' heading when the compiler named the file the error is in."""
    if error.line is None or not error.source_file or error.source_file.startswith("<"):
        return ""
    uri = create_command_uri(error.source_file, f"L{error.line}")
    return (
        f'<a style="color:white" href="{escape_html(uri)}">'
        f'<h3 style="margin-bottom: 1rem">Line {error.line}</h3></a>'
    )


def _error_block(error: CompileError, source_text: Optional[str]) -> str:
    code = ""
    if source_text is not None and error.line is not None:
        code = _excerpt_html(source_text, error.line)

    return (
        '<div style="margin-bottom: 1rem">'
        f"{_line_heading(error)}"
        f"<h4>Error: {escape_html(error.message)}</h4>"
        f'<div style="{CODE_STYLE}">{code}</div>'
        "</div>"
    )


def _structured_document(failure: RenderFailure, source_text: Optional[str], base_href: Optional[str]) -> str:
    blocks = "".join(_error_block(error, source_text) for error in failure.errors)
    head = f'<head><base href="{escape_html(base_href)}"></head>' if base_href else ""
    return (
        f"{head}"
        f'<body style="{BODY_STYLE}">'
        '<h1 style="margin-bottom: 0.5rem;">Errors rendering MJML</h1>'
        f"{blocks}"
        "</body>"
    )


def _generic_document(failure: RenderFailure) -> str:
    message = failure.message
    detail = ""
    if failure.detail:
        detail = f'<div style="{CODE_STYLE}; white-space: pre-wrap">{escape_html(failure.detail)}</div>'
    return (
        f'<body style="{BODY_STYLE}">'
        '<h1 style="margin-bottom: 0.5rem;">Error</h1>'
        f'<p style="margin-bottom: 1rem">{escape_html(message)}</p>'
        f"{detail}"
        "</body>"
    )


def _scalar_document(message: str) -> str:
    return (
        f'<body style="{BODY_STYLE}">'
        '<h1 style="margin-bottom: 0.5rem;">Error</h1>'
        f'<p style="margin-bottom: 1rem">{escape_html(message)}</p>'
        "</body>"
    )


def format_failure(
    failure: Union[RenderFailure, str],
    source_text: Optional[str] = None,
    base_href: Optional[str] = None,
) -> str:
    """
    Format a failed render as a displayable HTML document.

    Args:
        failure: RenderFailure from the pipeline, or a bare message string
        source_text: Text the error lines index into. Defaults to the text
            carried by the failure (the compiler input for structured errors).
        base_href: Optional base URI so relative links in the page resolve

    Returns:
        HTML document. Never raises.
    """
    try:
        if isinstance(failure, str):
            return _scalar_document(failure)

        if source_text is None:
            source_text = failure.source_for_context

        if failure.kind is FailureKind.STRUCTURED:
            return _structured_document(failure, source_text, base_href)
        if failure.kind is FailureKind.GENERIC:
            return _generic_document(failure)
        return _scalar_document(failure.message)
    except Exception as e:
        _log_warning(f"Could not format render failure: {e}")
        try:
            return _scalar_document(repr(failure))
        except Exception:
            return _scalar_document("Rendering failed")


def format_not_mjml() -> str:
    """Document shown when the previewed document is not an MJML document."""
    return _scalar_document(NOT_MJML_MESSAGE)
