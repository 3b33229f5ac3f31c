"""
Link handling for rendered previews.

Relative resource links in compiled HTML are rewritten so a preview shown
outside the document's folder still finds local images and stylesheets.
Error pages link back to source lines through command URIs of the form
command:_mjml.openDocumentLink?{"path": ..., "fragment": "L12"}.
"""

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import quote, unquote, urlsplit

OPEN_DOCUMENT_COMMAND = "_mjml.openDocumentLink"
SOURCE_EXTENSION = ".mjml"

LINK_ATTRIBUTE = re.compile(r"""(\b(?:src|href|background)\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE)
CSS_URL = re.compile(r"""(url\(\s*)(["']?)([^"')]+)\2(\s*\))""", re.IGNORECASE)
SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
LINE_FRAGMENT = re.compile(r"^L(\d+)$", re.IGNORECASE)

# Placeholders filled in later by the mail delivery system, e.g. [[UNSUB_LINK_DE]]
PLACEHOLDER_MARKERS = ("[[", "{{", "{%", "*|", "%%")


def is_relative_link(link: str) -> bool:
    """
    True if link is a relative path that should be resolved against the document.

    Absolute URLs, scheme URIs (mailto:, data:, cid:, ...), protocol-relative
    and root-relative paths, fragment-only links and template placeholders are
    not relative links.
    """
    link = link.strip()
    if not link or link.startswith(("#", "/", "\\")):
        return False
    # Also catches Windows drive paths such as C:\
    if SCHEME.match(link):
        return False
    return not any(marker in link for marker in PLACEHOLDER_MARKERS)


def resolve_local_resource(source_path: str, link: str) -> str:
    """
    Resolve a relative link against the folder of source_path.

    Query string and fragment are preserved.

    Returns:
        Absolute file:// URI
    """
    parts = urlsplit(link)
    target = Path(os.path.abspath(Path(source_path).parent / unquote(parts.path)))
    uri = target.as_uri()
    if parts.query:
        uri += f"?{parts.query}"
    if parts.fragment:
        uri += f"#{parts.fragment}"
    return uri


def fix_links(
    html: str,
    source_path: str,
    resolve: Callable[[str, str], str] = resolve_local_resource,
) -> str:
    """
    Rewrite relative resource links in compiled HTML.

    Args:
        html: Compiled HTML
        source_path: Path of the source document ("" leaves html untouched)
        resolve: Function (source_path, link) -> resolvable URI

    Returns:
        HTML with relative src/href/background values and CSS url() targets rewritten
    """
    if not source_path:
        return html

    def rewrite_attribute(match):
        prefix, quote_char, link = match.groups()
        if not is_relative_link(link):
            return match.group(0)
        return f"{prefix}{quote_char}{resolve(source_path, link)}{quote_char}"

    def rewrite_css(match):
        prefix, quote_char, link, suffix = match.groups()
        if not is_relative_link(link):
            return match.group(0)
        return f"{prefix}{quote_char}{resolve(source_path, link.strip())}{quote_char}{suffix}"

    html = LINK_ATTRIBUTE.sub(rewrite_attribute, html)
    return CSS_URL.sub(rewrite_css, html)


# =============================================================================
# Links back into source documents
# =============================================================================


@dataclass(frozen=True)
class DocumentLocation:
    """A document path and an optional zero-based line to reveal."""

    path: str
    line: Optional[int] = None


def create_command_uri(path: str, fragment: str) -> str:
    """Build a command URI that opens path and reveals the line named by fragment ("L12")."""
    payload = json.dumps({"path": path, "fragment": fragment})
    return f"command:{OPEN_DOCUMENT_COMMAND}?{quote(payload)}"


def parse_command_uri(uri: str) -> Optional[DocumentLocation]:
    """
    Decode a command URI created by create_command_uri().

    Returns:
        DocumentLocation, or None if uri is not an open-document link
    """
    prefix = f"command:{OPEN_DOCUMENT_COMMAND}?"
    if not uri.startswith(prefix):
        return None
    try:
        args = json.loads(unquote(uri[len(prefix) :]))
    except ValueError:
        return None
    if not isinstance(args, dict) or not args.get("path"):
        return None
    return DocumentLocation(path=unquote(args["path"]), line=parse_line_fragment(args.get("fragment")))


def parse_line_fragment(fragment: Optional[str]) -> Optional[int]:
    """
    Convert an "L<n>" fragment into a zero-based line index.

    Examples:
        >>> parse_line_fragment("L12")
        11
        >>> parse_line_fragment("section-2") is None
        True
    """
    if not fragment:
        return None
    match = LINE_FRAGMENT.match(fragment)
    if match is None:
        return None
    return max(int(match.group(1)) - 1, 0)


def candidate_document_paths(path: str) -> List[str]:
    """Paths to try when opening a linked document: as given, then with .mjml if it has no extension."""
    candidates = [path]
    if not Path(path).suffix:
        candidates.append(path + SOURCE_EXTENSION)
    return candidates


def resolve_document_link(uri: str) -> Optional[DocumentLocation]:
    """
    Resolve an open-document command URI to an existing file.

    Returns:
        DocumentLocation of the first existing candidate path, or None if uri is
        not an open-document link or no candidate exists
    """
    location = parse_command_uri(uri)
    if location is None:
        return None
    for candidate in candidate_document_paths(location.path):
        if Path(candidate).is_file():
            return DocumentLocation(path=candidate, line=location.line)
    return None
