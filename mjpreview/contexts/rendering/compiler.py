"""
MJML Compilation Module

Handles compilation of MJML markup to HTML using the mjml command-line compiler.
"""

import asyncio
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

from dotenv import load_dotenv

from mjpreview.contexts.rendering.exceptions import MarkupCompilationError
from mjpreview.contexts.rendering.logger import _log_debug

load_dotenv()

MJML_COMPILER = os.getenv("MJML_COMPILER", "mjml")
COMPILE_TIMEOUT_S = float(os.getenv("MJML_COMPILE_TIMEOUT", "60"))

# Validation levels understood by mjml
VALIDATION_LEVELS = ("skip", "soft", "strict")

# mjml formats each validation error as "Line 3 of file.mjml (mj-text) — message"
DIAGNOSTIC_PATTERN = re.compile(r"^Line (\d+) of (.*?) \(([\w-]+)\) (?:—|--?) (.+)$", re.MULTILINE)


@dataclass(frozen=True)
class CompilerOptions:
    """
    Options handed to the markup compiler.

    Attributes:
        level: Validation level ("skip" leaves already-resolved links alone)
        file_path: Path used by the compiler to resolve relative mj-include paths
        minify: Minify the HTML output
        beautify: Beautify the HTML output
        cwd: Working directory for the compiler process
    """

    level: str = "skip"
    file_path: str = "."
    minify: bool = False
    beautify: bool = True
    cwd: str = "."


@dataclass(frozen=True)
class MarkupDiagnostic:
    """
    A single error reported by the markup compiler.

    Attributes:
        line: 1-based line in the compiler input (None if not reported)
        message: Bare message
        tag_name: MJML tag the error refers to
        formatted_message: Full message as printed by the compiler
        file_path: File named in the message (mj-include errors name the partial)
    """

    line: Optional[int]
    message: str
    tag_name: str = ""
    formatted_message: str = ""
    file_path: str = ""


@dataclass
class CompilerOutput:
    """Result of one compiler invocation: HTML and/or diagnostics."""

    html: str = ""
    errors: List[MarkupDiagnostic] = field(default_factory=list)


class MarkupCompiler(Protocol):
    """Contract for the markup compiler engine."""

    def compile(self, text: str, options: CompilerOptions) -> CompilerOutput:
        ...


def parse_diagnostics(output: str) -> List[MarkupDiagnostic]:
    """
    Parse mjml diagnostics from compiler output.

    Args:
        output: Text printed by the compiler (usually stderr)

    Returns:
        Diagnostics in the order they were printed
    """
    diagnostics = []
    for match in DIAGNOSTIC_PATTERN.finditer(output):
        diagnostics.append(
            MarkupDiagnostic(
                line=int(match.group(1)),
                message=match.group(4).strip(),
                tag_name=match.group(3),
                formatted_message=match.group(0).strip(),
                file_path=match.group(2),
            )
        )
    return diagnostics


def _flag(value: bool) -> str:
    return "true" if value else "false"


class MjmlCliCompiler:
    """
    Markup compiler backed by the mjml command-line tool.

    The MJML text is piped to `mjml --stdin --stdout`; HTML is read from
    stdout and diagnostics from stderr.

    Args:
        executable: mjml executable (default: from MJML_COMPILER env, else "mjml")
        timeout: Seconds before a compilation is abandoned
    """

    def __init__(self, executable: Optional[str] = None, timeout: float = COMPILE_TIMEOUT_S):
        self.executable = executable or MJML_COMPILER
        self.timeout = timeout

    def build_command(self, options: CompilerOptions) -> List[str]:
        if options.level not in VALIDATION_LEVELS:
            raise ValueError(
                f"Unknown validation level '{options.level}'. Available levels: {list(VALIDATION_LEVELS)}"
            )
        return [
            self.executable,
            "--stdin",
            "--stdout",
            f"--config.validationLevel={options.level}",
            f"--config.minify={_flag(options.minify)}",
            f"--config.beautify={_flag(options.beautify)}",
            f"--config.filePath={options.file_path}",
        ]

    def compile(self, text: str, options: CompilerOptions) -> CompilerOutput:
        """
        Compile MJML text to HTML.

        Raises:
            MarkupCompilationError: If the compiler cannot be run or times out
        """
        cmd = self.build_command(options)
        _log_debug(f"Running {' '.join(cmd)} in {options.cwd}")

        try:
            result = subprocess.run(
                cmd,
                input=text,
                cwd=options.cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",  # Replace invalid UTF-8 bytes instead of crashing
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise MarkupCompilationError(
                f"MJML compiler not found: {self.executable}. Install it with `npm install -g mjml`"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise MarkupCompilationError(
                f"MJML compiler timed out after {self.timeout:.0f}s"
            ) from e

        errors = parse_diagnostics(result.stderr)

        # Crash without positioned diagnostics (e.g. malformed XML)
        if result.returncode != 0 and not errors:
            message = result.stderr.strip() or f"mjml exited with status {result.returncode}"
            errors = [MarkupDiagnostic(line=None, message=message, formatted_message=message)]

        return CompilerOutput(html=result.stdout if result.returncode == 0 else "", errors=errors)


async def compile_async(
    compiler: MarkupCompiler, text: str, options: CompilerOptions
) -> CompilerOutput:
    """Run a blocking compiler in a worker thread and await its output."""
    return await asyncio.to_thread(compiler.compile, text, options)


def compiler_options_for(source_path: str, minify: bool, beautify: bool) -> CompilerOptions:
    """
    Derive compiler options for a document.

    The working directory is the document's folder so relative includes and
    assets resolve; unsaved documents fall back to the process working directory.
    """
    if source_path:
        path = Path(source_path)
        return CompilerOptions(
            level="skip",
            file_path=str(path),
            minify=minify,
            beautify=beautify,
            cwd=str(path.parent),
        )
    cwd = str(Path.cwd())
    return CompilerOptions(level="skip", file_path=cwd, minify=minify, beautify=beautify, cwd=cwd)
