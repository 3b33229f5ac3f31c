"""
Preview Context

Responsibilities:
- Binds source documents to preview artifacts with stable identities
- Caches render results and decides when they go stale
- Reacts to host document events and pushes rendered HTML to the host

Owns: Identity registry, render cache, preview sessions, preview settings
Never: Parses, expands, or compiles markup (delegates to the rendering context)
"""

from mjpreview.contexts.preview.cache import InvalidationPolicy, RenderCache
from mjpreview.contexts.preview.identity import (
    PREVIEW_SURFACE_URI,
    IdentityRegistry,
    PreviewArtifactIdentity,
    SourceDocumentIdentity,
    is_preview_surface,
)
from mjpreview.contexts.preview.session import (
    PreviewHost,
    PreviewSession,
    PreviewSessionManager,
    SessionState,
)
from mjpreview.contexts.preview.settings import PreviewSettings, load_preview_settings

__all__ = [
    # Identity
    "SourceDocumentIdentity",
    "PreviewArtifactIdentity",
    "IdentityRegistry",
    "PREVIEW_SURFACE_URI",
    "is_preview_surface",
    # Cache
    "RenderCache",
    "InvalidationPolicy",
    # Sessions
    "PreviewHost",
    "PreviewSession",
    "PreviewSessionManager",
    "SessionState",
    # Settings
    "PreviewSettings",
    "load_preview_settings",
]
