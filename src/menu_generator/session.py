"""Editing session: owns the document and guards the single in-flight extraction."""

from __future__ import annotations

from typing import Optional
import itertools
import threading

from .document.model import MenuDocumentModel
from .domain.models import MenuDocument
from .logging import get_logger
from .service import MenuExtractionService

LOG = get_logger("menu-session")


class InFlightGuard:
    """Single-slot token for the current extraction request.

    `begin()` hands out a new token and supersedes the previous one; only the
    holder of the latest token may deliver a result.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._current: Optional[int] = None
        self._lock = threading.Lock()

    def begin(self) -> int:
        with self._lock:
            token = next(self._counter)
            if self._current is not None:
                LOG.info("Request %d supersedes pending request %d", token, self._current)
            self._current = token
            return token

    def is_current(self, token: int) -> bool:
        with self._lock:
            return self._current == token

    def settle(self, token: int) -> bool:
        """Release the slot if token is current; return whether it was."""
        with self._lock:
            if self._current != token:
                return False
            self._current = None
            return True

    def invalidate(self) -> None:
        with self._lock:
            self._current = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._current is not None


class MenuSession:
    def __init__(self, service: Optional[MenuExtractionService] = None) -> None:
        self.service = service
        self.guard = InFlightGuard()
        self.model: Optional[MenuDocumentModel] = None

    @property
    def document(self) -> Optional[MenuDocument]:
        return self.model.document if self.model else None

    def load(self, document: MenuDocument) -> MenuDocumentModel:
        self.model = MenuDocumentModel(document)
        return self.model

    def deliver(self, token: int, document: MenuDocument) -> bool:
        """Install a finished extraction unless a newer request superseded it."""
        if not self.guard.settle(token):
            LOG.info("Discarding result of stale request %d", token)
            return False
        self.load(document)
        return True

    def run_extraction(self, image_bytes: bytes, mime_type: Optional[str]) -> Optional[MenuDocument]:
        """Extract and install a document; returns None when the result went stale.

        Extraction errors propagate; the slot is released so a retry can start.
        """
        if self.service is None:
            raise RuntimeError("MenuSession has no extraction service")
        token = self.guard.begin()
        try:
            document = self.service.process_image(image_bytes, mime_type)
        except Exception:
            self.guard.settle(token)
            raise
        return document if self.deliver(token, document) else None

    def reset(self) -> None:
        """End the session: drop the document and ignore any pending result."""
        self.guard.invalidate()
        self.model = None
        LOG.debug("Session reset")
