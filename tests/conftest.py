"""Shared fakes for rendering and preview tests."""

import asyncio
from typing import List, Optional

import pytest

from mjpreview.contexts.preview.identity import SourceDocumentIdentity
from mjpreview.contexts.rendering.compiler import CompilerOptions, CompilerOutput, MarkupDiagnostic
from mjpreview.contexts.rendering.pipeline import RenderPipeline
from mjpreview.contexts.rendering.results import RenderContext, RenderSuccess


class FakeCompiler:
    """
    Markup compiler stand-in.

    Wraps the input in <html> by default. Set `errors` to report diagnostics
    or `html` to return fixed output.
    """

    def __init__(self, html: Optional[str] = None, errors: Optional[List[MarkupDiagnostic]] = None):
        self.html = html
        self.errors = list(errors or [])
        self.calls: List[tuple] = []

    def compile(self, text: str, options: CompilerOptions) -> CompilerOutput:
        self.calls.append((text, options))
        html = self.html if self.html is not None else f"<html>{text}</html>"
        return CompilerOutput(html=html, errors=list(self.errors))


class FakeHost:
    """Preview host that records what it was asked to do."""

    def __init__(self, fail_display: bool = False):
        self.displays: List[tuple] = []
        self.focused: List[SourceDocumentIdentity] = []
        self.fail_display = fail_display

    def request_display(self, artifact_id: str, content: str) -> None:
        if self.fail_display:
            raise RuntimeError("preview panel is gone")
        self.displays.append((artifact_id, content))

    def resolve_local_resource(self, source_path: str, link: str) -> str:
        return f"resource://{link}"

    def show_source(self, source_id: SourceDocumentIdentity) -> None:
        self.focused.append(source_id)

    @property
    def last_content(self) -> str:
        return self.displays[-1][1]


class StubRenderer:
    """
    Async renderer that counts calls and echoes the source text.

    With gated=True every render waits until release() is called, so tests
    can hold a render in flight. `max_active` records the largest number of
    renders that ran at the same time.
    """

    def __init__(self, gated: bool = False):
        self.contexts: List[RenderContext] = []
        self.gated = gated
        self.active = 0
        self.max_active = 0
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    @property
    def calls(self) -> int:
        return len(self.contexts)

    def release(self) -> None:
        self._gate.set()

    async def __call__(self, ctx: RenderContext):
        self.contexts.append(ctx)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            if self.gated:
                await self._gate.wait()
            # Let any other pending render start before this one finishes
            await asyncio.sleep(0)
            return RenderSuccess(markup=f"<html>{ctx.source_text}</html>")
        finally:
            self.active -= 1


@pytest.fixture
def fake_compiler():
    return FakeCompiler()


@pytest.fixture
def pipeline(fake_compiler):
    """Render pipeline with the fake compiler and the default localization stage."""
    return RenderPipeline(compiler=fake_compiler)


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def doc_a():
    return SourceDocumentIdentity.from_uri("file:///templates/a.mjml")


@pytest.fixture
def doc_b():
    return SourceDocumentIdentity.from_uri("file:///templates/b.mjml")
