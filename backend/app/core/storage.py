"""File storage for payment receipts and payment proofs.

Files are written under ``settings.storage_root`` with UUID-based keys. Signed
URLs carry an expiry timestamp and an HMAC-SHA256 signature over key and expiry.
"""

import hashlib
import hmac
import shutil
import uuid
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.parse import quote, urlencode

from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now

PAYMENT_RECEIPTS_FOLDER = "payment-receipts"
PAYMENT_PROOFS_FOLDER = "payment-proofs"


class FileStorage(Protocol):
    def upload(self, stream: BinaryIO, filename: str, content_type: str, folder: str) -> str:
        ...

    def generate_signed_url(self, storage_key: str, expiry_minutes: int | None = None) -> str:
        ...

    def verify_signature(self, storage_key: str, expires: int, signature: str) -> bool:
        ...

    def path_for(self, storage_key: str) -> Path:
        ...


def _safe_name(filename: str) -> str:
    name = Path(filename or "upload").name
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in name) or "upload"


class LocalFileStorage:
    def __init__(self, root: str | None = None, secret_key: str | None = None, base_url: str = "/files"):
        settings = get_settings()
        self.root = Path(root or settings.storage_root)
        self.secret_key = secret_key or settings.secret_key
        self.base_url = base_url.rstrip("/")

    def upload(self, stream: BinaryIO, filename: str, content_type: str, folder: str) -> str:
        storage_key = f"{folder}/{uuid.uuid4().hex}_{_safe_name(filename)}"
        path = self.root / storage_key
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as target:
            shutil.copyfileobj(stream, target)
        return storage_key

    def path_for(self, storage_key: str) -> Path:
        root = self.root.resolve()
        path = (root / storage_key).resolve()
        if not path.is_relative_to(root):
            raise ValueError(f"Storage key {storage_key!r} points outside the storage root.")
        return path

    def _signature(self, storage_key: str, expires: int) -> str:
        message = f"{storage_key}:{expires}".encode()
        return hmac.new(self.secret_key.encode(), message, hashlib.sha256).hexdigest()

    def generate_signed_url(self, storage_key: str, expiry_minutes: int | None = None) -> str:
        minutes = expiry_minutes if expiry_minutes is not None else get_settings().signed_url_expiry_minutes
        expires = int((utc_now() + timedelta(minutes=minutes)).timestamp())
        query = urlencode({"expires": expires, "signature": self._signature(storage_key, expires)})
        return f"{self.base_url}/{quote(storage_key)}?{query}"

    def verify_signature(self, storage_key: str, expires: int, signature: str) -> bool:
        if expires < int(utc_now().timestamp()):
            return False
        return hmac.compare_digest(self._signature(storage_key, expires), signature)


_storage_instance = None


def get_storage() -> FileStorage:
    """Return the process-wide storage backend; overridden in tests via dependency_overrides."""
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = LocalFileStorage()
    return _storage_instance
