"""
Per-user bundling session: the three document groups, the font provider
and the most recent output. The web layer keeps one Session per browser.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from bundler.assembler import assemble
from bundler.config import FALLBACK_FONT, GROUP_ORDER, MAIN, REQUIRE_FONT, SESSION_IDLE_SECONDS
from bundler.errors import AssemblyError
from bundler.fonts import FontProvider, StaticFontProvider
from bundler.models import AssemblyOptions, DocumentGroup, MergedDocument, SourceFile

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        font_provider: Optional[FontProvider] = None,
        fallback_font: str = FALLBACK_FONT,
        require_font: bool = REQUIRE_FONT,
    ):
        self.font_provider = font_provider or StaticFontProvider(None)
        self.fallback_font = fallback_font
        self.require_font = require_font
        self.groups: Dict[str, DocumentGroup] = {kind: DocumentGroup(kind) for kind in GROUP_ORDER}
        self.options = AssemblyOptions(require_embedded_font=require_font)
        self.output: Optional[MergedDocument] = None

    def group(self, kind: str) -> DocumentGroup:
        if kind not in self.groups:
            raise KeyError(kind)
        return self.groups[kind]

    # -- intake ------------------------------------------------------------ #
    def add_files(self, kind: str, files: Iterable[Tuple[str, bytes]]) -> List[SourceFile]:
        """
        Add (name, data) pairs to a group. The main group keeps only the last one.
        Every file is opened first; one unreadable file rejects the whole upload.
        """
        group = self.group(kind)
        added = [SourceFile(data=data, name=name) for name, data in files]
        for source in added:
            source.page_count
        for source in added:
            group.add(source)
        if kind == MAIN:
            added = added[-1:]
        return added

    def remove_file(self, kind: str, file_id: str) -> bool:
        return self.group(kind).remove(file_id)

    def configure_group(self, kind: str, label_prefix: Optional[str] = None, start_index: Optional[int] = None) -> None:
        group = self.group(kind)
        if not group.is_labeled:
            raise ValueError("The main document has no label settings")
        if label_prefix is not None:
            if not isinstance(label_prefix, str):
                raise TypeError("label_prefix must be a string")
            label_prefix = label_prefix.strip()
            if not label_prefix:
                raise ValueError("label_prefix must not be empty")
            group.label_prefix = label_prefix
        if start_index is not None:
            if isinstance(start_index, bool) or not isinstance(start_index, int):
                raise TypeError(f"start_index must be a whole number, got {start_index!r}")
            if start_index < 1:
                raise ValueError("start_index must be at least 1")
            group.start_index = start_index

    def labels(self, kind: str) -> List[str]:
        group = self.group(kind)
        return [
            f"{group.label_for(i)}: {f.name}" if group.is_labeled else f.name
            for i, f in enumerate(group.files)
        ]

    # -- assembly ---------------------------------------------------------- #
    def font_status(self) -> str:
        return "embedded" if self.font_provider() else "fallback"

    def reload_font(self) -> str:
        """Ask the font provider to try again, if it supports that."""
        refresh = getattr(self.font_provider, "refresh", None)
        if refresh is not None:
            refresh()
        return self.font_status()

    def assemble(self, options: Optional[AssemblyOptions] = None) -> MergedDocument:
        if options is not None:
            self.options = options
        self.output = None
        try:
            self.output = assemble(
                [self.groups[kind] for kind in GROUP_ORDER],
                self.font_provider(),
                self.options,
                fallback_font=self.fallback_font,
            )
        except AssemblyError as exc:
            logger.warning("Assembly failed (%s): %s", exc.reason.value, exc.message)
            raise
        return self.output

    def describe(self) -> dict:
        return {
            "groups": {
                kind: {
                    "label_prefix": group.label_prefix,
                    "start_index": group.start_index,
                    "files": [
                        {"id": f.id, "name": f.name, "label": label}
                        for f, label in zip(group.files, self.labels(kind))
                    ],
                }
                for kind, group in self.groups.items()
            },
            "font": self.font_status(),
            "has_output": self.output is not None,
        }


class SessionRegistry:
    """
    In-process store of sessions keyed by an opaque id. Sessions idle for
    longer than *max_idle* seconds are evicted whenever the registry is read.
    """

    def __init__(
        self,
        font_provider: Optional[FontProvider] = None,
        max_idle: float = SESSION_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        **session_kwargs,
    ):
        self.font_provider = font_provider
        self.max_idle = max_idle
        self.clock = clock
        self.session_kwargs = session_kwargs
        self._sessions: Dict[str, Tuple[Session, float]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: Optional[str]) -> Tuple[str, Session]:
        with self._lock:
            now = self.clock()
            self._evict(now)
            if session_id and session_id in self._sessions:
                state, _ = self._sessions[session_id]
            else:
                session_id = uuid.uuid4().hex
                state = Session(self.font_provider, **self.session_kwargs)
            self._sessions[session_id] = (state, now)
            return session_id, state

    def drop(self, session_id: Optional[str]) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def _evict(self, now: float) -> None:
        expired = [sid for sid, (_, used) in self._sessions.items() if now - used > self.max_idle]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Evicted %d idle sessions", len(expired))

    def __len__(self) -> int:
        return len(self._sessions)
