"""
Render pipeline data model.

A render attempt takes one immutable RenderContext and yields exactly one
RenderResult: either RenderSuccess with the final HTML or RenderFailure with
the errors that stopped the pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

DEFAULT_LOCALE = "de"


@dataclass(frozen=True)
class RenderContext:
    """
    Inputs of a single render attempt.

    Attributes:
        source_text: Raw MJML template text as authored
        context_data: Template variables (copied into a read-only mapping)
        source_path: Filesystem path of the source document ("" if unsaved)
        minify: Pass-through flag for the markup compiler
        beautify: Pass-through flag for the markup compiler
        locale: Target locale for the localization stage
    """

    source_text: str
    context_data: Mapping[str, Any] = field(default_factory=dict)
    source_path: str = ""
    minify: bool = False
    beautify: bool = True
    locale: str = DEFAULT_LOCALE

    def __post_init__(self):
        object.__setattr__(self, "context_data", MappingProxyType(dict(self.context_data)))


@dataclass(frozen=True)
class CompileError:
    """
    A single pipeline error.

    Attributes:
        message: Human-readable message
        line: 1-based line number, or None when the position is unknown
        raw: Original error payload (exception or compiler diagnostic)
        source_file: File the compiler named in its message, if any
    """

    message: str
    line: Optional[int] = None
    raw: Any = None
    source_file: str = ""


class FailureKind(Enum):
    """Shape of a render failure, fixed once at the pipeline boundary."""

    STRUCTURED = "structured"  # positioned markup compiler diagnostics
    GENERIC = "generic"  # single exception from stage 1 or 2 (or synthesized)
    SCALAR = "scalar"  # bare message string


@dataclass(frozen=True)
class RenderSuccess:
    markup: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class RenderFailure:
    """
    Failed render attempt.

    Attributes:
        kind: Which of the three failure shapes this is
        errors: Errors in the order they were reported
        detail: Verbatim detail payload shown under a generic error
        source_for_context: Text the error lines index into (for excerpts)
    """

    kind: FailureKind
    errors: Tuple[CompileError, ...] = ()
    detail: Optional[str] = None
    source_for_context: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        """First error message (convenience for logs and CLI output)."""
        return self.errors[0].message if self.errors else ""

    @classmethod
    def structured(cls, errors, source: Optional[str] = None) -> "RenderFailure":
        return cls(kind=FailureKind.STRUCTURED, errors=tuple(errors), source_for_context=source)

    @classmethod
    def generic(
        cls,
        message: str,
        detail: Optional[str] = None,
        line: Optional[int] = None,
        raw: Any = None,
        source: Optional[str] = None,
    ) -> "RenderFailure":
        return cls(
            kind=FailureKind.GENERIC,
            errors=(CompileError(message=message, line=line, raw=raw),),
            detail=detail,
            source_for_context=source,
        )

    @classmethod
    def scalar(cls, message: str) -> "RenderFailure":
        return cls(kind=FailureKind.SCALAR, errors=(CompileError(message=message),))


RenderResult = Union[RenderSuccess, RenderFailure]
