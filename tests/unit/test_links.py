"""Unit tests for link rewriting and document links."""

import pytest

from mjpreview.contexts.rendering.links import (
    DocumentLocation,
    candidate_document_paths,
    create_command_uri,
    fix_links,
    is_relative_link,
    parse_command_uri,
    parse_line_fragment,
    resolve_document_link,
    resolve_local_resource,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "link, expected",
    [
        ("images/logo.png", True),
        ("../shared/style.css", True),
        ("https://example.com/logo.png", False),
        ("//cdn.example.com/logo.png", False),
        ("/static/logo.png", False),
        ("mailto:team@example.com", False),
        ("data:image/png;base64,AAAA", False),
        ("#top", False),
        ("[[UNSUB_LINK_DE]]", False),
        ("", False),
    ],
)
def test_is_relative_link(link, expected):
    """Test which links count as relative."""
    assert is_relative_link(link) is expected


@pytest.mark.unit
def test_resolve_local_resource_keeps_query_and_fragment(tmp_path):
    """Test that resolving a resource keeps its query and fragment."""
    source = tmp_path / "emails" / "welcome.mjml"

    uri = resolve_local_resource(str(source), "img/logo.png?v=2#x")

    assert uri == (tmp_path / "emails" / "img" / "logo.png").as_uri() + "?v=2#x"


@pytest.mark.unit
def test_fix_links_rewrites_relative_attributes():
    """Test that relative src and href attributes are rewritten."""
    html = '<img src="logo.png"><a href="https://example.com">x</a><td background=\'bg.jpg\'></td>'

    result = fix_links(html, "/t/a.mjml", resolve=lambda path, link: f"R({link})")

    assert 'src="R(logo.png)"' in result
    assert 'href="https://example.com"' in result
    assert "background='R(bg.jpg)'" in result


@pytest.mark.unit
def test_fix_links_rewrites_css_urls():
    """Test that relative CSS url() references are rewritten."""
    html = "<div style=\"background: url('bg.png')\"></div><style>a { background: url(https://x/y.png) }</style>"

    result = fix_links(html, "/t/a.mjml", resolve=lambda path, link: f"R({link})")

    assert "url('R(bg.png)')" in result
    assert "url(https://x/y.png)" in result


@pytest.mark.unit
def test_fix_links_leaves_placeholders_alone():
    """Test that placeholder links like [[UNSUB_LINK]] are untouched."""
    html = '<a href="[[UNSUB_LINK_DE]]">Abmelden</a>'
    assert fix_links(html, "/t/a.mjml", resolve=lambda path, link: "changed") == html


@pytest.mark.unit
def test_fix_links_without_source_path_is_noop():
    """Test that links stay as they are for unsaved documents."""
    html = '<img src="logo.png">'
    assert fix_links(html, "", resolve=lambda path, link: "changed") == html


@pytest.mark.unit
def test_command_uri_round_trip():
    """Test that a document link parses back to its path and line."""
    uri = create_command_uri("/templates/welcome email.mjml", "L12")

    assert uri.startswith("command:_mjml.openDocumentLink?")
    assert parse_command_uri(uri) == DocumentLocation(path="/templates/welcome email.mjml", line=11)


@pytest.mark.unit
def test_parse_command_uri_rejects_other_uris():
    """Test that non-command URIs are rejected."""
    assert parse_command_uri("https://example.com") is None
    assert parse_command_uri("command:_mjml.openDocumentLink?not-json") is None


@pytest.mark.unit
def test_parse_line_fragment():
    assert parse_line_fragment("L1") == 0
    assert parse_line_fragment("l30") == 29
    assert parse_line_fragment("section") is None
    assert parse_line_fragment(None) is None


@pytest.mark.unit
def test_candidate_document_paths_adds_extension():
    """Test that a path without extension also tries .mjml."""
    assert candidate_document_paths("/t/footer") == ["/t/footer", "/t/footer.mjml"]
    assert candidate_document_paths("/t/footer.mjml") == ["/t/footer.mjml"]


@pytest.mark.unit
def test_resolve_document_link_falls_back_to_mjml_extension(tmp_path):
    """Test that a document link resolves to the .mjml file when needed."""
    (tmp_path / "footer.mjml").write_text("<mj-text/>")
    uri = create_command_uri(str(tmp_path / "footer"), "L3")

    location = resolve_document_link(uri)

    assert location == DocumentLocation(path=str(tmp_path / "footer.mjml"), line=2)


@pytest.mark.unit
def test_resolve_document_link_missing_file(tmp_path):
    """Test that a link to a missing file resolves to None."""
    assert resolve_document_link(create_command_uri(str(tmp_path / "gone"), "L1")) is None
