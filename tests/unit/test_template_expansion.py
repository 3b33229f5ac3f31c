"""Unit tests for template expansion (render stage 1)."""

import pytest

from mjpreview.contexts.rendering.exceptions import TemplateExpansionError
from mjpreview.contexts.rendering.template_expansion import expand_template


@pytest.mark.unit
def test_expand_substitutes_variables():
    """Test that context variables are substituted."""
    assert expand_template("<mj-text>Hi {{ name }}</mj-text>", {"name": "Ada"}) == "<mj-text>Hi Ada</mj-text>"


@pytest.mark.unit
def test_expand_escapes_interpolated_values():
    """Test that interpolated values are HTML-escaped."""
    result = expand_template("{{ value }}", {"value": "<b>it's</b>"})
    assert result == "&lt;b&gt;it&#39;s&lt;/b&gt;"


@pytest.mark.unit
def test_expand_keeps_trailing_newline():
    """Test that expansion keeps the template's trailing newline."""
    assert expand_template("<mjml></mjml>\n", {}) == "<mjml></mjml>\n"


@pytest.mark.unit
def test_undefined_variable_reports_line():
    """Test that an undefined variable fails with the line it appears on."""
    source = "<mjml>\n<mj-body>\n{{ missing }}\n</mj-body>\n</mjml>"

    with pytest.raises(TemplateExpansionError) as exc_info:
        expand_template(source, {})

    assert exc_info.value.line == 3
    assert "missing" in exc_info.value.message
    assert exc_info.value.name == "UndefinedError"


@pytest.mark.unit
def test_undefined_variable_on_first_line():
    """Test that an undefined variable on line 1 reports line 1."""
    with pytest.raises(TemplateExpansionError) as exc_info:
        expand_template("{{ x }}", {})

    assert exc_info.value.line == 1


@pytest.mark.unit
def test_syntax_error_reports_line():
    """Test that syntax errors carry the line reported by the parser."""
    with pytest.raises(TemplateExpansionError) as exc_info:
        expand_template("<mjml>\n{{ x + }}\n</mjml>", {"x": 1})

    assert exc_info.value.line == 2
    assert exc_info.value.name == "TemplateSyntaxError"


@pytest.mark.unit
def test_runtime_exception_is_wrapped():
    """Test that arbitrary exceptions raised by template code become TemplateExpansionError."""
    with pytest.raises(TemplateExpansionError) as exc_info:
        expand_template("line one\n{{ 1 // zero }}", {"zero": 0})

    assert exc_info.value.name == "ZeroDivisionError"
    assert exc_info.value.line == 2


@pytest.mark.unit
def test_context_data_overrides_defaults():
    """Test that context data wins over defaults of the same name."""
    result = expand_template("{{ a }}-{{ b }}", {"b": "mine"}, defaults={"a": "default", "b": "default"})
    assert result == "default-mine"


@pytest.mark.unit
def test_include_resolves_relative_to_source(tmp_path):
    """Test that includes are loaded from the source document's directory."""
    (tmp_path / "footer.mjml").write_text("<mj-text>Bye {{ name }}</mj-text>")
    source_path = tmp_path / "welcome.mjml"

    result = expand_template("{% include 'footer.mjml' %}", {"name": "Ada"}, str(source_path))

    assert result == "<mj-text>Bye Ada</mj-text>"


@pytest.mark.unit
def test_include_changes_are_picked_up(tmp_path):
    """Test that edits to included partials show up on the next expansion."""
    partial = tmp_path / "partial.mjml"
    source_path = str(tmp_path / "main.mjml")

    partial.write_text("first")
    assert expand_template("{% include 'partial.mjml' %}", {}, source_path) == "first"

    partial.write_text("second")
    assert expand_template("{% include 'partial.mjml' %}", {}, source_path) == "second"
