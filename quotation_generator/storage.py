"""File-backed quotation records keyed by their user-chosen file name."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import List, Optional
from urllib.parse import quote, unquote

from .models import Quotation

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"
TMP_SUFFIX = ".tmp"
# Most filesystems cap a single path component at 255 bytes.
MAX_NAME_BYTES = 255 - len(RECORD_SUFFIX) - len(TMP_SUFFIX)


class StorageError(RuntimeError):
    """Base class for persistence failures."""


class InvalidFileName(StorageError):
    """Raised when a record name is blank or too long to store."""


class QuotationNotFound(StorageError):
    """Raised when no record exists under the requested name."""


def _now_ms() -> int:
    return int(time.time() * 1000)


class QuotationStore:
    def __init__(self, root: str) -> None:
        self.root = root
        self._lock = threading.Lock()

    def _path(self, file_name: str) -> str:
        name = (file_name or "").strip()
        if not name:
            raise InvalidFileName("File name is required.")
        quoted = quote(name, safe="")
        if len(quoted) > MAX_NAME_BYTES:
            raise InvalidFileName(
                f"File name is too long ({len(quoted)} bytes once encoded; maximum is {MAX_NAME_BYTES})."
            )
        return os.path.join(self.root, quoted + RECORD_SUFFIX)

    def save(self, quotation: Quotation) -> Quotation:
        path = self._path(quotation.file_name)
        quotation.file_name = quotation.file_name.strip()
        quotation.updated_at = _now_ms()
        tmp_path = path + TMP_SUFFIX
        with self._lock:
            try:
                os.makedirs(self.root, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as handle:
                    json.dump(quotation.to_dict(), handle, ensure_ascii=False)
                os.replace(tmp_path, path)
            except OSError as exc:
                raise StorageError(f"Could not save {quotation.file_name!r}: {exc}") from exc
        logger.info("Saved quotation %r", quotation.file_name)
        return quotation

    def load(self, file_name: str, theme_color: Optional[str] = None) -> Quotation:
        path = self._path(file_name)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError as exc:
            raise QuotationNotFound(file_name) from exc
        except ValueError as exc:
            raise StorageError(f"Record {file_name!r} is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Could not read {file_name!r}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StorageError(f"Record {file_name!r} is not a JSON object.")
        quotation = Quotation.from_dict(raw)
        if theme_color:
            quotation.theme_color = theme_color
        return quotation

    def list_records(self) -> List[Quotation]:
        """All stored records, most recently updated first."""
        try:
            names = os.listdir(self.root)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"Could not list records in {self.root}: {exc}") from exc

        records: List[Quotation] = []
        for entry in names:
            if not entry.endswith(RECORD_SUFFIX):
                continue
            try:
                records.append(self.load(unquote(entry[: -len(RECORD_SUFFIX)])))
            except (OSError, ValueError, StorageError) as exc:
                logger.warning("Skipping unreadable record %s: %s", entry, exc)
        records.sort(key=lambda record: record.updated_at or 0, reverse=True)
        return records

    def delete(self, file_name: str) -> None:
        path = self._path(file_name)
        with self._lock:
            try:
                os.remove(path)
            except FileNotFoundError as exc:
                raise QuotationNotFound(file_name) from exc
            except OSError as exc:
                raise StorageError(f"Could not delete {file_name!r}: {exc}") from exc
        logger.info("Deleted quotation %r", file_name.strip())
