"""
Preview session management.

Owns the pairing between MJML source documents and their previews. The host
editor notifies the manager of document lifecycle events; the manager binds
documents, invalidates and re-renders through the cache, and pushes rendered
HTML (or a formatted error page) back to the host.

Per-document lifecycle:

    UNBOUND --preview--> BOUND --render--> FRESH <--invalidate/render--> STALE
    any bound state --close/teardown--> UNBOUND
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set

from mjpreview.contexts.preview.cache import InvalidationPolicy, RenderCache
from mjpreview.contexts.preview.identity import (
    IdentityRegistry,
    PreviewArtifactIdentity,
    SourceDocumentIdentity,
    is_preview_surface,
)
from mjpreview.contexts.preview.logger import (
    _log_debug,
    log_binding,
    log_host_failure,
    log_invalidation,
    log_unbinding,
)
from mjpreview.contexts.preview.settings import PreviewSettings
from mjpreview.contexts.rendering.diagnostics import format_failure, format_not_mjml
from mjpreview.contexts.rendering.localization import JinjaLocalizationStage
from mjpreview.contexts.rendering.pipeline import RenderPipeline
from mjpreview.contexts.rendering.results import RenderContext, RenderResult

MJML_KIND = "mjml"


class PreviewHost(Protocol):
    """What the preview core needs from the host editor."""

    def request_display(self, artifact_id: PreviewArtifactIdentity, content: str) -> None:
        """Show content (rendered HTML or an error page) in the preview artifact."""
        ...

    def resolve_local_resource(self, source_path: str, link: str) -> str:
        """Turn a link relative to source_path into something the preview can load."""
        ...

    def show_source(self, source_id: SourceDocumentIdentity) -> None:
        """Give focus back to the source document (preserve-focus hint)."""
        ...


class SessionState(Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    STALE = "stale"
    FRESH = "fresh"


class DocumentEvent(Enum):
    CHANGE = "change"
    SAVE = "save"
    FOCUS = "focus"


@dataclass
class PreviewSession:
    """
    A bound document and its preview.

    Attributes:
        source_id: Bound document
        artifact_id: Preview artifact it renders into
        text: Latest document content received from the host
        kind: Document language id
        path: Filesystem path ("" for unsaved documents)
        state: Lifecycle state
        subscriptions: Document events this session reacts to
    """

    source_id: SourceDocumentIdentity
    artifact_id: PreviewArtifactIdentity
    text: str
    kind: str = MJML_KIND
    path: str = ""
    state: SessionState = SessionState.BOUND
    subscriptions: Set[DocumentEvent] = field(default_factory=set)


class PreviewSessionManager:
    """
    Drives previews from host notifications.

    Args:
        host: Host editor collaborator
        settings: Preview settings (default: built-in defaults)
        pipeline: Render pipeline (default: mjml CLI compiler + Jinja localization)
        registry: Identity registry (default: a new one owned by this manager)
        cache: Render cache (default: a new one owned by this manager)
        context_data: Template variables passed to every render
    """

    def __init__(
        self,
        host: PreviewHost,
        settings: Optional[PreviewSettings] = None,
        pipeline: Optional[RenderPipeline] = None,
        registry: Optional[IdentityRegistry] = None,
        cache: Optional[RenderCache] = None,
        context_data: Optional[Mapping[str, Any]] = None,
    ):
        self.host = host
        self.settings = settings or PreviewSettings()
        self.pipeline = pipeline or RenderPipeline(
            localization=JinjaLocalizationStage(self.settings.locale_dir),
            context_defaults=self.settings.context_defaults,
            resolve_resource=host.resolve_local_resource,
        )
        self.registry = registry if registry is not None else IdentityRegistry()
        self.cache = cache if cache is not None else RenderCache()
        self.policy = InvalidationPolicy(update_when_typing=self.settings.update_when_typing)
        self.context_data = dict(context_data or {})
        self.preview_open = False
        self._sessions: Dict[SourceDocumentIdentity, PreviewSession] = {}

    # =========================================================================
    # Queries
    # =========================================================================

    def session(self, source_id: SourceDocumentIdentity) -> Optional[PreviewSession]:
        return self._sessions.get(source_id)

    def state_of(self, source_id: SourceDocumentIdentity) -> SessionState:
        session = self._sessions.get(source_id)
        return session.state if session else SessionState.UNBOUND

    @property
    def sessions(self) -> List[PreviewSession]:
        return list(self._sessions.values())

    # =========================================================================
    # Host notifications
    # =========================================================================

    async def preview(
        self,
        source_id: SourceDocumentIdentity,
        text: str,
        kind: str = MJML_KIND,
        path: str = "",
    ) -> Optional[RenderResult]:
        """
        Explicit preview request: open the preview surface and show source_id in it.

        Binds the document on first request and renders it if its cached
        result is stale.
        """
        self.preview_open = True
        session = self._bind(source_id, text, kind, path)
        session.text, session.kind, session.path = text, kind, path

        result = await self._refresh(session)

        if self.settings.preserve_focus:
            try:
                self.host.show_source(source_id)
            except Exception:
                log_host_failure("restore focus", source_id)
        return result

    async def document_opened(
        self, source_id: SourceDocumentIdentity, text: str, kind: str, path: str = ""
    ) -> Optional[RenderResult]:
        """A document was opened. Opening the preview surface itself marks the preview open."""
        if is_preview_surface(source_id.uri):
            self.preview_open = True
            return None
        if self.settings.auto_preview and self.preview_open and kind == MJML_KIND:
            return await self.preview(source_id, text, kind, path)
        return None

    async def document_changed(
        self, source_id: SourceDocumentIdentity, text: str
    ) -> Optional[RenderResult]:
        """Content of source_id changed (unsaved edit)."""
        session = self._subscribed(source_id, DocumentEvent.CHANGE)
        if session is None:
            return None
        session.text = text
        if not self.policy.on_change():
            return None
        self._invalidate(session, "content changed")
        return await self._refresh(session)

    async def document_saved(
        self, source_id: SourceDocumentIdentity, text: str
    ) -> Optional[RenderResult]:
        """source_id was saved."""
        session = self._subscribed(source_id, DocumentEvent.SAVE)
        if session is None:
            return None
        session.text = text
        if not self.policy.on_save():
            return None
        self._invalidate(session, "saved")
        return await self._refresh(session)

    async def active_view_changed(
        self,
        source_id: SourceDocumentIdentity,
        text: str,
        kind: str,
        path: str = "",
    ) -> Optional[RenderResult]:
        """
        The host switched to source_id.

        With auto preview on, an unbound MJML document is bound and shown.
        A bound document is re-rendered only if it is stale.
        """
        session = self._subscribed(source_id, DocumentEvent.FOCUS)
        if session is None:
            if self.settings.auto_preview and self.preview_open and kind == MJML_KIND:
                return await self.preview(source_id, text, kind, path)
            return None

        session.text = text
        if self.policy.on_focus(is_bound=True, is_stale=not self.cache.is_fresh(source_id)):
            return await self._refresh(session)
        return None

    def document_closed(self, source_id: SourceDocumentIdentity) -> Optional[PreviewArtifactIdentity]:
        """
        source_id was closed.

        Closing the shared preview surface tears down every preview.

        Returns:
            Artifact identity released for source_id, if it was bound
        """
        if is_preview_surface(source_id.uri):
            self.teardown()
            return None
        return self._unbind(source_id)

    def teardown(self) -> List[PreviewArtifactIdentity]:
        """Close the preview surface and release every bound document."""
        freed = [artifact_id for artifact_id in map(self._unbind, list(self._sessions)) if artifact_id]
        # Entries bound through a shared registry without a session
        freed += self.registry.clear()
        self.cache.clear()
        self.preview_open = False
        return freed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _bind(
        self, source_id: SourceDocumentIdentity, text: str, kind: str, path: str
    ) -> PreviewSession:
        session = self._sessions.get(source_id)
        if session is not None:
            return session

        artifact_id = self.registry.ensure(source_id)
        session = PreviewSession(
            source_id=source_id,
            artifact_id=artifact_id,
            text=text,
            kind=kind,
            path=path,
            subscriptions={DocumentEvent.CHANGE, DocumentEvent.SAVE, DocumentEvent.FOCUS},
        )
        self._sessions[source_id] = session
        log_binding(source_id, artifact_id)
        return session

    def _unbind(self, source_id: SourceDocumentIdentity) -> Optional[PreviewArtifactIdentity]:
        session = self._sessions.pop(source_id, None)
        artifact_id = self.registry.remove(source_id)
        self.cache.discard(source_id)
        if session is not None:
            session.subscriptions.clear()
            session.state = SessionState.UNBOUND
        if artifact_id is not None:
            log_unbinding(source_id, artifact_id)
        return artifact_id

    def _subscribed(
        self, source_id: SourceDocumentIdentity, event: DocumentEvent
    ) -> Optional[PreviewSession]:
        session = self._sessions.get(source_id)
        if session is None or event not in session.subscriptions:
            return None
        return session

    def _invalidate(self, session: PreviewSession, reason: str) -> None:
        self.cache.invalidate(session.source_id)
        session.state = SessionState.STALE
        log_invalidation(session.source_id, reason)

    # =========================================================================
    # Rendering
    # =========================================================================

    def _context_for(self, session: PreviewSession) -> RenderContext:
        return RenderContext(
            source_text=session.text,
            context_data=self.context_data,
            source_path=session.path,
            minify=self.settings.minify,
            beautify=self.settings.beautify,
            locale=self.settings.locale,
        )

    async def _refresh(self, session: PreviewSession) -> Optional[RenderResult]:
        """Render session's document if stale and display the result."""
        if session.kind != MJML_KIND:
            self._display(session, format_not_mjml())
            return None

        result = await self.cache.get_or_render(
            session.source_id, self._context_for(session), self.pipeline
        )

        # Closed while the render was running
        if self._sessions.get(session.source_id) is not session:
            _log_debug(f"Dropping render for released document {session.source_id}")
            return result

        session.state = (
            SessionState.FRESH if self.cache.is_fresh(session.source_id) else SessionState.STALE
        )
        self.registry.attach_render(session.source_id, result)

        if result.ok:
            content = result.markup
        else:
            content = format_failure(result, base_href=session.source_id.uri)
        self._display(session, content)
        return result

    def _display(self, session: PreviewSession, content: str) -> None:
        try:
            self.host.request_display(session.artifact_id, content)
        except Exception:
            log_host_failure("display preview", session.source_id)
