"""Unit tests for render result types and HTML helpers."""

from dataclasses import FrozenInstanceError

import pytest

from mjpreview.contexts.rendering.results import FailureKind, RenderContext, RenderFailure
from mjpreview.utils.html import escape_html, unescape_apostrophes


@pytest.mark.unit
def test_render_context_copies_context_data():
    """Test that the render context is isolated from its input mapping."""
    data = {"name": "Ada"}
    ctx = RenderContext(source_text="x", context_data=data)

    data["name"] = "Grace"

    assert ctx.context_data["name"] == "Ada"
    with pytest.raises(TypeError):
        ctx.context_data["name"] = "Grace"


@pytest.mark.unit
def test_render_context_is_frozen():
    ctx = RenderContext(source_text="x")
    with pytest.raises(FrozenInstanceError):
        ctx.source_text = "y"


@pytest.mark.unit
def test_render_context_equality():
    """Test render context equality on content."""
    assert RenderContext(source_text="x", context_data={"a": 1}) == RenderContext(source_text="x", context_data={"a": 1})
    assert RenderContext(source_text="x", locale="de") != RenderContext(source_text="x", locale="en")


@pytest.mark.unit
def test_generic_failure_has_single_error():
    """Test building a generic failure."""
    failure = RenderFailure.generic("boom", detail="trace", line=4)

    assert failure.kind is FailureKind.GENERIC
    assert failure.ok is False
    assert failure.message == "boom"
    assert failure.errors[0].line == 4


@pytest.mark.unit
def test_escape_html():
    assert escape_html("<a href=\"x\">Tom's & co</a>") == "&lt;a href=&#34;x&#34;&gt;Tom&#39;s &amp; co&lt;/a&gt;"


@pytest.mark.unit
def test_unescape_apostrophes():
    assert unescape_apostrophes("Tom&#39;s &#039;shop&#039; &amp;") == "Tom's 'shop' &amp;"
