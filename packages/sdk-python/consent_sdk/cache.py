"""Device-local consent cache and offline queue."""

import json
import logging
import os
import threading
from typing import Any, Optional

logger = logging.getLogger(__name__)


class LocalConsentCache:
    """Cached states, policy documents and pending events.

    With a ``path`` every change is written through to a JSON file so queued
    events survive restarts.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.RLock()
        self._states: dict[str, dict[str, Any]] = {}
        self._documents: dict[str, dict[str, Any]] = {}
        self._pending: list[dict[str, Any]] = []
        if path and os.path.exists(path):
            self._load()

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._states = data.get("states", {})
        self._documents = data.get("documents", {})
        self._pending = data.get("pending", [])
        logger.debug(f"Loaded consent cache from {self.path} ({len(self._pending)} pending)")

    def _save(self) -> None:
        if not self.path:
            return
        data = {"states": self._states, "documents": self._documents, "pending": self._pending}
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, sort_keys=True)
        os.replace(tmp_path, self.path)

    # States

    def get_state(self, consent_type: str) -> Optional[dict[str, Any]]:
        with self._lock:
            state = self._states.get(consent_type)
            return dict(state) if state else None

    def states(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {key: dict(value) for key, value in self._states.items()}

    def set_state(self, consent_type: str, state: dict[str, Any]) -> None:
        with self._lock:
            self._states[consent_type] = dict(state)
            self._save()

    def replace_states(self, states: list[dict[str, Any]]) -> None:
        """Overwrite every cached state with the authoritative remote ones."""
        with self._lock:
            self._states = {state["type"]: dict(state) for state in states}
            self._save()

    # Policy documents

    def get_document(self, consent_type: str) -> Optional[dict[str, Any]]:
        with self._lock:
            return self._documents.get(consent_type)

    def set_document(self, consent_type: str, document: dict[str, Any]) -> None:
        with self._lock:
            self._documents[consent_type] = dict(document)
            self._save()

    # Offline queue

    def pending_events(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(event) for event in self._pending]

    def enqueue(self, event: dict[str, Any]) -> None:
        with self._lock:
            if any(pending["id"] == event["id"] for pending in self._pending):
                return
            self._pending.append(dict(event))
            self._save()

    def remove_pending(self, event_ids) -> int:
        """Drop events by id; returns how many were removed."""
        event_ids = set(event_ids)
        with self._lock:
            before = len(self._pending)
            self._pending = [event for event in self._pending if event["id"] not in event_ids]
            removed = before - len(self._pending)
            if removed:
                self._save()
            return removed

    def clear(self) -> None:
        with self._lock:
            self._states = {}
            self._pending = []
            self._save()
