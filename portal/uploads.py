"""Content-addressed storage for uploaded import files and avatars.

Layout:
  <upload_dir>/sha256/<first2>/<sha256>

Stored files are referenced as ``blob://<sha256>``; import jobs may also
point at an ``http(s)://`` URL, which is downloaded when the job runs.
"""

from __future__ import annotations

import hashlib
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import httpx

from .config import settings

BLOB_SCHEME = "blob://"
IMAGE_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


class UploadRejected(Exception):
    pass


class UploadNotFound(Exception):
    pass


def _normalize_sha256_hex(value: str) -> str:
    sha = (value or "").strip().lower()
    if len(sha) != 64 or any(ch not in "0123456789abcdef" for ch in sha):
        raise UploadNotFound(f"not a sha256 reference: {value!r}")
    return sha


def file_type_for(filename: str | None, content_type: str | None = None) -> str | None:
    """csv/json from the extension, falling back to the content type."""
    suffix = Path(filename or "").suffix.lower().lstrip(".")
    if suffix in ("csv", "json"):
        return suffix
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype in ("text/csv", "application/csv", "application/vnd.ms-excel"):
        return "csv"
    if ctype == "application/json":
        return "json"
    return None


def image_type_for(data: bytes) -> str | None:
    """Content type from the leading bytes of a JPEG, PNG or GIF image."""
    for signature, content_type in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return content_type
    return None


@dataclass(frozen=True)
class StoredUpload:
    sha256: str
    size_bytes: int
    path: Path

    @property
    def url(self) -> str:
        return f"{BLOB_SCHEME}{self.sha256}"


class UploadStore:
    """Streaming, size-capped writes keyed by the sha256 of the content."""

    def __init__(self, root_dir: str | Path | None = None, *, max_bytes: int | None = None):
        self.root_dir = Path(root_dir) if root_dir is not None else settings.upload_dir_path
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes
        self.algo_dir = self.root_dir / "sha256"
        self.tmp_dir = self.root_dir / ".tmp"

    def path_for(self, sha256_hex: str) -> Path:
        sha = _normalize_sha256_hex(sha256_hex)
        return self.algo_dir / sha[:2] / sha

    async def write_stream(self, chunks: AsyncIterator[bytes]) -> StoredUpload:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.tmp_dir / f"tmp_{secrets.token_hex(16)}"
        h = hashlib.sha256()
        size = 0

        try:
            with open(tmp_path, "wb") as f:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise UploadRejected(f"File exceeds {self.max_bytes} bytes")
                    h.update(chunk)
                    f.write(chunk)
            if size == 0:
                raise UploadRejected("File is empty")

            digest = h.hexdigest()
            final_path = self.path_for(digest)
            final_path.parent.mkdir(parents=True, exist_ok=True)
            if final_path.exists():
                tmp_path.unlink(missing_ok=True)
            else:
                os.replace(tmp_path, final_path)
            return StoredUpload(sha256=digest, size_bytes=size, path=final_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    async def write_bytes(self, data: bytes) -> StoredUpload:
        async def _iter() -> AsyncIterator[bytes]:
            yield data or b""

        return await self.write_stream(_iter())

    def read_bytes(self, file_url: str) -> bytes:
        if not file_url.startswith(BLOB_SCHEME):
            raise UploadNotFound(f"not a stored upload: {file_url}")
        path = self.path_for(file_url[len(BLOB_SCHEME):])
        if not path.is_file():
            raise UploadNotFound(f"upload missing: {file_url}")
        return path.read_bytes()

    def delete(self, file_url: str) -> bool:
        if not file_url.startswith(BLOB_SCHEME):
            return False
        path = self.path_for(file_url[len(BLOB_SCHEME):])
        if not path.is_file():
            return False
        path.unlink()
        return True


async def fetch_file(
    file_url: str,
    *,
    store: UploadStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bytes:
    """Return the bytes behind an import job's ``file_url``."""
    store = store or UploadStore()
    if file_url.startswith(BLOB_SCHEME):
        return store.read_bytes(file_url)
    if not file_url.startswith(("http://", "https://")):
        raise UploadNotFound(f"unsupported file reference: {file_url}")

    async with httpx.AsyncClient(
        timeout=settings.import_download_timeout_seconds,
        follow_redirects=True,
        transport=transport,
    ) as client:
        async with client.stream("GET", file_url) as resp:
            if resp.status_code >= 400:
                raise UploadNotFound(f"download failed ({resp.status_code}): {file_url}")
            body = bytearray()
            async for chunk in resp.aiter_bytes():
                body.extend(chunk)
                if len(body) > store.max_bytes:
                    raise UploadRejected(f"File exceeds {store.max_bytes} bytes")
    return bytes(body)
