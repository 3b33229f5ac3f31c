"""Exceptions raised by the render pipeline stages.

Every stage raises one of these internally. RenderPipeline.render() converts
them into RenderFailure values so nothing is thrown past the pipeline boundary.
"""

from typing import List, Optional


class RenderPipelineError(Exception):
    """Base class for errors raised by a render stage."""


class TemplateExpansionError(RenderPipelineError):
    """
    Exception raised when template expansion fails (stage 1).

    Attributes:
        message: Error description
        line: 1-based line in the original source text, if known
        original_error: The original Jinja2 error
    """

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.line = line
        self.original_error = original_error

        parts = [message]
        if line is not None:
            parts.append(f"(line {line})")

        super().__init__(" ".join(parts))

    @property
    def name(self) -> str:
        """Class name of the underlying template error."""
        if self.original_error is not None:
            return type(self.original_error).__name__
        return type(self).__name__


class LocalizationEvaluationError(RenderPipelineError):
    """
    Exception raised when generating or evaluating localized markup fails (stage 2).

    These errors carry no line number: source positions are lost once the
    localization markup has been rewritten into generated template code.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)

    @property
    def name(self) -> str:
        if self.original_error is not None:
            return type(self.original_error).__name__
        return type(self).__name__


class MarkupCompilationError(RenderPipelineError):
    """
    Exception raised when the markup compiler reports errors (stage 3).

    Attributes:
        diagnostics: Compiler diagnostics in the order reported
    """

    def __init__(self, message: str, diagnostics: Optional[List] = None):
        self.message = message
        self.diagnostics = list(diagnostics or [])
        super().__init__(message)


class EmptyOutputError(RenderPipelineError):
    """Raised when the compiler succeeds but produces no HTML."""

    def __init__(self, message: str = "No renderable content"):
        self.message = message
        super().__init__(message)
