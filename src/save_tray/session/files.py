"""File-backed document store for a coordinator process.

Storage
-------
Each document is one JSON file::

    <root>/<document_ref>.json

.. code-block:: json

    {
      "owner": "alice",
      "attachments": {"save-tray": {"participants": { ... ledger ... }}},
      "_checksum": "sha256:b94f3e..."
    }

``_checksum`` covers every other field serialized with ``sort_keys=True``,
so a hand-edited or truncated file is reported instead of silently loaded.

Documents are created out of band (:meth:`FileDocumentStore.create` or by
dropping a file in place).  The store never creates a document on write: a
reference with no file resolves to ``None``.

Concurrency
-----------
``set_attachment`` is a read-modify-write of the whole file.  It runs under
an exclusive ``fcntl.flock`` on a sidecar ``.lock`` file and replaces the
document file atomically (temp file + ``os.replace``), so readers only ever
see a complete file.  ``fcntl`` is POSIX-only.
"""

from __future__ import annotations

import asyncio
import fcntl
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Raised when a document file cannot be read or written.

    The authority handler reports it as ``internal-error``.
    """


def _compute_checksum(payload: dict) -> str:
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _is_safe_ref(document_ref: str) -> bool:
    # References become file names; anything that could escape the root is rejected.
    return (
        bool(document_ref)
        and document_ref not in (".", "..")
        and "/" not in document_ref
        and "\\" not in document_ref
        and "\x00" not in document_ref
    )


def _read_body(path: Path) -> dict:
    try:
        envelope = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise DocumentStoreError(f"Cannot read document file {path}: {exc}") from exc

    if not isinstance(envelope, dict):
        raise DocumentStoreError(f"Document file {path} does not hold an object")

    recorded = envelope.get("_checksum")
    body = {k: v for k, v in envelope.items() if k != "_checksum"}
    if recorded is not None and recorded != f"sha256:{_compute_checksum(body)}":
        raise DocumentStoreError(f"Checksum mismatch in document file {path}")
    return body


def _write_body(path: Path, body: dict) -> None:
    envelope = {**body, "_checksum": f"sha256:{_compute_checksum(body)}"}
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(envelope, fh, ensure_ascii=False, sort_keys=True, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileDocument:
    """One document file. Reads go to disk every time; nothing is cached."""

    def __init__(self, document_ref: str, path: Path) -> None:
        self.document_ref = document_ref
        self.path = path

    @property
    def owner(self) -> str | None:
        owner = _read_body(self.path).get("owner")
        return owner if isinstance(owner, str) else None

    def get_attachment(self, namespace: str, key: str) -> Any:
        attachments = _read_body(self.path).get("attachments")
        if not isinstance(attachments, dict):
            return None
        scope = attachments.get(namespace)
        if not isinstance(scope, dict):
            return None
        return scope.get(key)

    async def set_attachment(self, namespace: str, key: str, value: Any) -> None:
        # flock and fsync block the calling thread.
        await asyncio.to_thread(self._write_attachment, namespace, key, value)
        logger.debug("document store: wrote %s/%s to %s", namespace, key, self.path.name)

    def _write_attachment(self, namespace: str, key: str, value: Any) -> None:
        lock_path = self.path.with_name(self.path.name + ".lock")
        try:
            with lock_path.open("a", encoding="utf-8") as lock:
                fcntl.flock(lock, fcntl.LOCK_EX)
                try:
                    body = _read_body(self.path)
                    attachments = body.get("attachments")
                    if not isinstance(attachments, dict):
                        attachments = {}
                    scope = attachments.get(namespace)
                    if not isinstance(scope, dict):
                        scope = {}
                    scope[key] = value
                    attachments[namespace] = scope
                    body["attachments"] = attachments
                    _write_body(self.path, body)
                finally:
                    fcntl.flock(lock, fcntl.LOCK_UN)
        except (OSError, TypeError, ValueError) as exc:
            raise DocumentStoreError(
                f"Failed to write {namespace}/{key} to {self.path}: {exc}"
            ) from exc


class FileDocumentStore:
    """
    Resolves document references to files under ``root``.

    Args:
        root: Directory holding ``<document_ref>.json`` files.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, document_ref: str) -> Path:
        return self.root / f"{document_ref}.json"

    def create(self, document_ref: str, *, owner: str | None = None) -> FileDocument:
        """Create an empty document file (used by tooling and tests)."""
        if not _is_safe_ref(document_ref):
            raise ValueError(f"Invalid document reference: {document_ref!r}")
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(document_ref)
        _write_body(path, {"owner": owner, "attachments": {}})
        return FileDocument(document_ref, path)

    async def resolve(self, document_ref: str) -> FileDocument | None:
        if not isinstance(document_ref, str) or not _is_safe_ref(document_ref):
            return None
        path = self.path_for(document_ref)
        if not path.is_file():
            return None
        return FileDocument(document_ref, path)
