"""
Shared utilities for MJPREVIEW.

Common functionality used across contexts:
- Logger setup with provenance
- HTML escaping helpers
- Timestamps for log directories
"""

from mjpreview.utils.html import escape_html, unescape_apostrophes
from mjpreview.utils.timestamp import now

__all__ = ["escape_html", "unescape_apostrophes", "now"]
