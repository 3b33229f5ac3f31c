"""
Document and preview identity registry.

Binds each source document to exactly one preview artifact. Source documents
are keyed structurally by a serialized identity token, so the same document
reached through different objects maps to the same entry. Preview artifact
identities are random UUIDs, never reused after a document is released.
"""

import json
import os
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

# The single shared preview surface; closing it closes every bound preview
PREVIEW_SURFACE_URI = "mjml-preview://authority/mjml-preview/sidebyside/"
PREVIEW_SCHEME = "mjml-preview"

PreviewArtifactIdentity = str


@dataclass(frozen=True)
class SourceDocumentIdentity:
    """
    Stable identity of a source document.

    Attributes:
        token: Serialized identity ('{"uri": "..."}'). Equality and hashing use it.
    """

    token: str

    @classmethod
    def from_uri(cls, uri: str) -> "SourceDocumentIdentity":
        """Identity of the document at uri (backslashes normalized to slashes)."""
        return cls(token=json.dumps({"uri": uri.replace("\\", "/")}))

    @classmethod
    def from_path(cls, path) -> "SourceDocumentIdentity":
        """Identity of a file on disk, as an absolute file:// URI."""
        return cls.from_uri(Path(os.path.abspath(path)).as_uri())

    @property
    def uri(self) -> str:
        return json.loads(self.token)["uri"]

    def __str__(self) -> str:
        return self.uri


def is_preview_surface(uri: str) -> bool:
    """True if uri addresses the shared preview surface rather than a source document."""
    normalized = uri.replace("\\", "/")
    return normalized.startswith(f"{PREVIEW_SCHEME}:") or (
        "mjml-preview" in normalized and "sidebyside" in normalized
    )


def new_artifact_identity() -> PreviewArtifactIdentity:
    """Allocate a fresh, globally unique preview artifact identity."""
    return str(uuid.uuid4())


@dataclass
class RegistryEntry:
    """
    One bound document.

    Attributes:
        source_id: Bound source document
        artifact_id: Its preview artifact
        cached_render: Most recent RenderResult shown for the document
    """

    source_id: SourceDocumentIdentity
    artifact_id: PreviewArtifactIdentity
    cached_render: Optional[object] = None


class IdentityRegistry:
    """
    Partial bijection between source documents and preview artifacts.

    Every operation runs under one lock, so readers never observe a
    half-inserted or half-removed entry.
    """

    def __init__(self):
        self._entries: Dict[SourceDocumentIdentity, RegistryEntry] = {}
        self._sources: Dict[PreviewArtifactIdentity, SourceDocumentIdentity] = {}
        self._lock = threading.Lock()

    def ensure(self, source_id: SourceDocumentIdentity) -> PreviewArtifactIdentity:
        """
        Artifact identity bound to source_id, allocating one on first use.

        Repeated calls for the same document return the same identity.
        """
        with self._lock:
            entry = self._entries.get(source_id)
            if entry is None:
                entry = RegistryEntry(source_id=source_id, artifact_id=new_artifact_identity())
                self._entries[source_id] = entry
                self._sources[entry.artifact_id] = source_id
            return entry.artifact_id

    def lookup(self, source_id: SourceDocumentIdentity) -> Optional[PreviewArtifactIdentity]:
        with self._lock:
            entry = self._entries.get(source_id)
            return entry.artifact_id if entry else None

    def source_for(self, artifact_id: PreviewArtifactIdentity) -> Optional[SourceDocumentIdentity]:
        """Reverse lookup: the document a preview artifact belongs to."""
        with self._lock:
            return self._sources.get(artifact_id)

    def remove(self, source_id: SourceDocumentIdentity) -> Optional[PreviewArtifactIdentity]:
        """
        Release source_id.

        Returns:
            The freed artifact identity, or None if the document was not bound
        """
        with self._lock:
            entry = self._entries.pop(source_id, None)
            if entry is None:
                return None
            del self._sources[entry.artifact_id]
            return entry.artifact_id

    def clear(self) -> List[PreviewArtifactIdentity]:
        """
        Release every document.

        Returns:
            The freed artifact identities
        """
        with self._lock:
            freed = [entry.artifact_id for entry in self._entries.values()]
            self._entries.clear()
            self._sources.clear()
            return freed

    def attach_render(self, source_id: SourceDocumentIdentity, result) -> bool:
        """Record the render most recently displayed for source_id. False if not bound."""
        with self._lock:
            entry = self._entries.get(source_id)
            if entry is None:
                return False
            entry.cached_render = result
            return True

    def entries(self) -> List[RegistryEntry]:
        """Snapshot of the current entries."""
        with self._lock:
            return [
                RegistryEntry(e.source_id, e.artifact_id, e.cached_render)
                for e in self._entries.values()
            ]

    def __contains__(self, source_id: SourceDocumentIdentity) -> bool:
        with self._lock:
            return source_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
