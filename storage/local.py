"""Filesystem-backed object storage with HMAC-signed download URLs."""

from __future__ import annotations

import hashlib
import hmac
import logging
import mimetypes
import os
import time
import urllib.parse
from pathlib import Path
from typing import Protocol

from engine.errors import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path`` and return the stored path."""

    def get(self, path: str) -> bytes:
        """Return the bytes stored at ``path``."""

    def sign(self, path: str, ttl_seconds: int) -> str:
        """Return a time-limited URL for ``path``."""


class LocalObjectStorage:
    def __init__(self, root: str | os.PathLike, *, secret: str, url_prefix: str = "/api/files") -> None:
        if not secret:
            raise ValueError("secret is required for signed URLs")
        self.root = Path(root).resolve()
        self.url_prefix = url_prefix.rstrip("/")
        self._secret = secret.encode("utf-8")

    def _resolve(self, path: str) -> Path:
        key = str(path or "").strip().lstrip("/")
        if not key:
            raise StorageError("path is required")
        target = (self.root / key).resolve()
        if target != self.root and self.root not in target.parents:
            raise StorageError(f"path escapes storage root: {path}")
        return target

    def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        tmp_path = target.with_name(f"{target.name}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(bytes(data))
            tmp_path.replace(target)
        except OSError as exc:
            raise StorageError(f"failed to store {path}: {exc}") from exc
        logger.info("storage_put path=%s bytes=%d content_type=%s", path, len(data), content_type)
        return str(path).lstrip("/")

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"failed to read {path}: {exc}") from exc

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except StorageError:
            return False

    def content_type(self, path: str) -> str:
        guessed, _ = mimetypes.guess_type(str(path))
        return guessed or "application/octet-stream"

    def _signature(self, path: str, expires: int) -> str:
        message = f"{str(path).lstrip('/')}:{int(expires)}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def sign(self, path: str, ttl_seconds: int, *, now: float | None = None) -> str:
        self._resolve(path)
        now = time.time() if now is None else now
        expires = int(now + max(1, int(ttl_seconds)))
        quoted = urllib.parse.quote(str(path).lstrip("/"), safe="/")
        query = urllib.parse.urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self.url_prefix}/{quoted}?{query}"

    def verify(self, path: str, expires: int | str, signature: str, *, now: float | None = None) -> bool:
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            return False
        now = time.time() if now is None else now
        if expires_at < now:
            return False
        return hmac.compare_digest(self._signature(path, expires_at), str(signature or ""))
