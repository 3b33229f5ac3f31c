"""
MJPREVIEW - MJML Preview rendering and synchronization

Renders MJML email source documents into HTML through a multi-stage pipeline,
keeps a live preview synchronized with edits to the source, and reports
compilation failures with source-line context.

Architecture:
- Rendering Context: Template expansion, localization, MJML compilation, diagnostics
- Preview Context: Document/preview identity, render caching, session lifecycle
"""

__version__ = "0.1.0"
