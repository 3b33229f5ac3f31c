"""
Render cache and invalidation policy.

Holds the latest RenderResult per source document together with its
freshness. At most one render runs per document at any time:

- A request for a fresh document returns the cached result.
- A request for a stale document starts a render, unless one is already
  running, in which case the caller waits for it.
- An invalidation (or a request carrying newer content) that arrives while
  a render is running schedules exactly one follow-up render, which starts
  after the running one finishes and uses the newest context. Every caller
  waiting on the document receives the final result.

Renders are never cancelled. A superseded result is still written to the
slot and then replaced by the follow-up (last write wins). A render still
running when its document is discarded finishes without being cached, and
the next render of that document starts only after it has finished.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from mjpreview.contexts.preview.identity import SourceDocumentIdentity
from mjpreview.contexts.preview.logger import _log_debug
from mjpreview.contexts.rendering.results import RenderContext, RenderResult

Renderer = Callable[[RenderContext], Awaitable[RenderResult]]


@dataclass(frozen=True)
class InvalidationPolicy:
    """
    Decides which document events make a cached render stale.

    Attributes:
        update_when_typing: Content changes invalidate (otherwise only saves do)
    """

    update_when_typing: bool = True

    def on_save(self) -> bool:
        return True

    def on_change(self) -> bool:
        return self.update_when_typing

    def on_focus(self, is_bound: bool, is_stale: bool) -> bool:
        """Switching to a document re-renders it only if it is bound and already stale."""
        return is_bound and is_stale


@dataclass
class CacheSlot:
    """Cache state of one document."""

    result: Optional[RenderResult] = None
    fresh: bool = False
    context: Optional[RenderContext] = None
    in_flight: Optional[asyncio.Future] = None
    rerun: bool = False
    detached: bool = False


class RenderCache:
    """
    Per-document render cache.

    Attributes:
        render_count: Number of renders started through this cache
    """

    def __init__(self):
        self._slots: Dict[SourceDocumentIdentity, CacheSlot] = {}
        # Renders of discarded slots that have not finished yet
        self._draining: Dict[SourceDocumentIdentity, asyncio.Future] = {}
        self.render_count = 0

    async def get_or_render(
        self,
        source_id: SourceDocumentIdentity,
        ctx: RenderContext,
        render: Renderer,
    ) -> RenderResult:
        """
        Cached result for source_id if fresh, otherwise render it.

        Args:
            source_id: Document to render
            ctx: Render inputs reflecting the document's current content
            render: Async render function (e.g. a RenderPipeline)

        Returns:
            RenderResult (a failure is a valid cached result too)
        """
        slot = self._slots.setdefault(source_id, CacheSlot())

        if slot.in_flight is not None:
            if slot.rerun or ctx != slot.context:
                # Newer content arrived mid-render: coalesce into one follow-up
                slot.context = ctx
                slot.rerun = True
            return await asyncio.shield(slot.in_flight)

        if slot.fresh and slot.result is not None:
            return slot.result

        slot.context = ctx
        previous = self._draining.get(source_id)
        slot.in_flight = asyncio.ensure_future(self._drive(source_id, slot, render, previous))
        return await asyncio.shield(slot.in_flight)

    async def _drive(
        self,
        source_id: SourceDocumentIdentity,
        slot: CacheSlot,
        render: Renderer,
        previous: Optional[asyncio.Future] = None,
    ) -> RenderResult:
        try:
            if previous is not None and not previous.done():
                _log_debug(f"Waiting for discarded render of {source_id} to finish")
                await asyncio.wait([previous])

            while True:
                slot.rerun = False
                ctx = slot.context
                self.render_count += 1
                _log_debug(f"Rendering {source_id} (render #{self.render_count})")

                result = await render(ctx)
                slot.result = result

                if slot.detached or not slot.rerun:
                    slot.fresh = True
                    return result
                _log_debug(f"{source_id} changed during render, rendering again")
        finally:
            slot.in_flight = None

    def invalidate(self, source_id: SourceDocumentIdentity) -> None:
        """
        Mark the cached result for source_id stale without dropping it.

        No-op for unknown documents.
        """
        slot = self._slots.get(source_id)
        if slot is None:
            return
        slot.fresh = False
        if slot.in_flight is not None:
            slot.rerun = True

    def is_fresh(self, source_id: SourceDocumentIdentity) -> bool:
        slot = self._slots.get(source_id)
        return slot is not None and slot.fresh

    def is_rendering(self, source_id: SourceDocumentIdentity) -> bool:
        slot = self._slots.get(source_id)
        return slot is not None and slot.in_flight is not None

    def cached(self, source_id: SourceDocumentIdentity) -> Optional[RenderResult]:
        """Last stored result for source_id, fresh or stale."""
        slot = self._slots.get(source_id)
        return slot.result if slot else None

    def discard(self, source_id: SourceDocumentIdentity) -> None:
        """Forget source_id. A render still running completes but is not cached."""
        slot = self._slots.pop(source_id, None)
        if slot is None or slot.in_flight is None:
            return

        slot.detached = True
        future = slot.in_flight
        self._draining[source_id] = future
        future.add_done_callback(lambda done: self._drained(source_id, done))

    def _drained(self, source_id: SourceDocumentIdentity, future: asyncio.Future) -> None:
        if self._draining.get(source_id) is future:
            del self._draining[source_id]

    def clear(self) -> None:
        for source_id in list(self._slots):
            self.discard(source_id)
