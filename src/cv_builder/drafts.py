# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Persistence for the current draft and the bounded draft history.

The store owns two keys in a storage port: the "current" slot holding the
in-progress session, and the "history" slot holding up to MAX_HISTORY named
snapshots, most recent first. Reads fail soft: corrupt or missing data looks
exactly like a first run.

The current slot is never migrated. A stored draft older than DRAFT_VERSION
is discarded on load. History entries are hydrated into the current shape
instead.
"""

import os
import re
import json
import asyncio
import logging
from datetime import datetime, timezone, date
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from cv_builder.models import (
    CVCustomisation,
    CVData,
    CoverLetterData,
    DraftData,
    UNTITLED_LABEL,
    coerce_str,
    hydrate_cover_letter,
    hydrate_customisation,
    hydrate_cv_data,
    new_id,
)

logger = logging.getLogger(__name__)

CURRENT_KEY = "cleancv-draft"
DRAFTS_KEY = "cleancv-drafts"
DRAFT_VERSION = 3
MAX_HISTORY = 20
IMPORTED_LABEL = "Imported Draft"


class DraftError(Exception):
    """Base class for draft import/export failures."""


class InvalidFormat(DraftError):
    """The imported file is not a JSON draft."""


class DraftReadError(DraftError):
    """The imported file could not be read at all."""


class Storage(Protocol):
    """Key/value port the draft store persists through."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage, used by tests and one-shot runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileStorage:
    """Stores each key as <directory>/<key>.json."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hydrate_draft(raw: dict, label_fallback: str = UNTITLED_LABEL) -> DraftData:
    cv_data = hydrate_cv_data(raw.get("cvData"))
    return DraftData(
        id=coerce_str(raw.get("id")) or new_id(),
        label=coerce_str(raw.get("label")) or label_fallback,
        cv_data=cv_data,
        customisation=hydrate_customisation(raw.get("customisation")),
        cover_letter=hydrate_cover_letter(raw.get("coverLetter")),
        job_description=coerce_str(raw.get("jobDescription")),
        saved_at=raw.get("savedAt") if isinstance(raw.get("savedAt"), str) else None,
        version=DRAFT_VERSION,
    )


def _safe_filename(label: str) -> str:
    return re.sub(r'[\\/:*?"<>|\x00-\x1f]+', "", label).strip()


class DraftStore:
    """
    Owns the current and history slots. Nothing else should touch the
    underlying storage keys.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    # ── Current (active) draft ──

    def load_current(self) -> Optional[DraftData]:
        raw = self.storage.get(CURRENT_KEY)
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
            if not isinstance(parsed, dict):
                raise ValueError("current draft is not an object")
            version = parsed.get("version")
            if not isinstance(version, int) or version < DRAFT_VERSION:
                logger.info(f"Discarding current draft with schema version {version!r} (current: {DRAFT_VERSION})")
                self.storage.remove(CURRENT_KEY)
                return None
            return _hydrate_draft(parsed)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable current draft: {e}")
            return None

    def save_current(
        self,
        cv_data: CVData,
        customisation: CVCustomisation,
        cover_letter: CoverLetterData,
        job_description: str = "",
        id: Optional[str] = None,
        label: Optional[str] = None,
    ) -> DraftData:
        draft = DraftData(
            id=id or new_id(),
            label=label or cv_data.personal.full_name or UNTITLED_LABEL,
            cv_data=cv_data,
            customisation=customisation,
            cover_letter=cover_letter,
            job_description=job_description,
            saved_at=_now_iso(),
            version=DRAFT_VERSION,
        )
        self.storage.set(CURRENT_KEY, json.dumps(draft.to_dict()))
        logger.debug(f"Saved current draft {draft.id} ('{draft.label}')")
        return draft

    def save_current_draft(self, draft: DraftData) -> DraftData:
        """Convenience wrapper that re-stamps an existing draft as current."""
        return self.save_current(
            draft.cv_data,
            draft.customisation,
            draft.cover_letter,
            job_description=draft.job_description,
            id=draft.id,
            label=draft.label,
        )

    # ── Draft history ──

    def load_all_history(self) -> List[DraftData]:
        raw = self.storage.get(DRAFTS_KEY)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable draft history: {e}")
            return []
        if not isinstance(parsed, list):
            logger.warning("Ignoring draft history that is not a list")
            return []
        entries = [entry for entry in parsed if isinstance(entry, dict)]
        drafts = [_hydrate_draft(entry) for entry in entries]
        # Persist newly assigned ids so they match on the next read
        missing = sum(1 for entry in entries if not coerce_str(entry.get("id")))
        if missing:
            logger.info(f"Assigned ids to {missing} draft(s) in history")
            self._write_history(drafts)
        return drafts

    def _write_history(self, drafts: List[DraftData]) -> None:
        self.storage.set(DRAFTS_KEY, json.dumps([d.to_dict() for d in drafts]))

    def find_in_history(self, draft_id: str) -> Optional[DraftData]:
        return next((d for d in self.load_all_history() if d.id == draft_id), None)

    def save_to_history(self, draft: DraftData) -> List[DraftData]:
        existing = self.load_all_history()
        # Replace if same id exists, otherwise prepend
        idx = next((i for i, d in enumerate(existing) if d.id == draft.id), None)
        if idx is not None:
            existing[idx] = draft
        else:
            existing.insert(0, draft)
        trimmed = existing[:MAX_HISTORY]
        if len(existing) > MAX_HISTORY:
            logger.info(f"Draft history full; dropped {len(existing) - MAX_HISTORY} oldest draft(s)")
        self._write_history(trimmed)
        return trimmed

    def delete_from_history(self, draft_id: str) -> List[DraftData]:
        existing = self.load_all_history()
        remaining = [d for d in existing if d.id != draft_id]
        if len(remaining) != len(existing):
            self._write_history(remaining)
        return remaining

    def rename_in_history(self, draft_id: str, new_label: str) -> List[DraftData]:
        existing = self.load_all_history()
        found = False
        for d in existing:
            if d.id == draft_id:
                d.label = new_label
                found = True
        if found:
            self._write_history(existing)
        return existing

    # ── File interchange ──

    def export_as_file(self, draft: DraftData, directory) -> Path:
        """Writes the draft as pretty JSON, named from its label and today's date."""
        content = json.dumps(draft.to_dict(), indent=2)
        name = _safe_filename(draft.label) or "draft"
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}-{date.today().isoformat()}.json"
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
        logger.info(f"Exported draft to {path}")
        return path

    async def import_from_file(self, path) -> DraftData:
        """
        Reads a draft file without touching the store. The result always gets
        a fresh id, so it never collides with an existing history entry.
        """
        path = Path(path)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DraftReadError(f"Failed to read file: {e}") from e

        try:
            parsed = json.loads(text)
        except ValueError as e:
            raise InvalidFormat("Invalid JSON file") from e
        if not isinstance(parsed, dict):
            raise InvalidFormat("Invalid JSON file: expected a draft object")

        cv_data = hydrate_cv_data(parsed.get("cvData"))
        draft = DraftData(
            id=new_id(),
            label=coerce_str(parsed.get("label")) or cv_data.personal.full_name or IMPORTED_LABEL,
            cv_data=cv_data,
            customisation=hydrate_customisation(parsed.get("customisation")),
            cover_letter=hydrate_cover_letter(parsed.get("coverLetter")),
            job_description=coerce_str(parsed.get("jobDescription")),
            saved_at=_now_iso(),
            version=DRAFT_VERSION,
        )
        logger.info(f"Imported draft '{draft.label}' from {path}")
        return draft
