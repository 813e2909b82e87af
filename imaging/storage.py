"""Asset store backends and the render publisher.

This module provides a simple interface for saving rendered JPEGs and
returning a URL for them. In development, the ``local`` backend writes
files under a base directory and returns relative URLs rooted at
``/image_library/`` (served by ``main.py``). In production, the ``gcs``
backend uploads to a Google Cloud Storage bucket and returns a signed URL,
or the public URL when uploads are made public.

Backends are plain objects passed to :class:`Publisher`; nothing here reads
the environment except :func:`build_publisher`, which ``main.py`` calls
once at startup.
"""

from __future__ import annotations

import asyncio
import os
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Protocol

from imaging import config
from imaging.errors import PublishError

JPEG_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class PublishedAsset:
    """Where a render ended up and how many bytes the store holds."""

    url: str
    bytes: int


class AssetStore(Protocol):
    def save(
        self, key: str, data: bytes, content_type: str, timeout: Optional[float] = None
    ) -> PublishedAsset:
        """Store ``data`` under ``key``.

        A store given a ``timeout`` must give up within it and raise
        ``TimeoutError`` without leaving the asset behind.
        """
        ...


class LocalAssetStore:
    """Write assets under ``base_dir`` and return ``/image_library/...`` URLs.

    Files are written next to their destination and only renamed into place
    once complete, so a write that overruns its timeout is never served.
    """

    def __init__(self, base_dir: str, url_prefix: str = "/image_library") -> None:
        self.base_dir = base_dir
        self.url_prefix = url_prefix.rstrip("/")

    def _write(self, path: str, data: bytes) -> None:
        with open(path, "wb") as f:
            f.write(data)

    def save(
        self, key: str, data: bytes, content_type: str, timeout: Optional[float] = None
    ) -> PublishedAsset:
        started = time.monotonic()
        dest_path = os.path.join(self.base_dir, key)
        os.makedirs(os.path.dirname(dest_path), exist_ok=True)
        part_path = dest_path + ".part"
        self._write(part_path, data)
        if timeout is not None and time.monotonic() - started > timeout:
            os.remove(part_path)
            raise TimeoutError(f"writing {key} took longer than {timeout}s")
        os.replace(part_path, dest_path)
        url = f"{self.url_prefix}/{key}".replace("\\", "/")
        return PublishedAsset(url=url, bytes=os.path.getsize(dest_path))


class GCSAssetStore:
    """Upload assets to a Google Cloud Storage bucket."""

    def __init__(
        self,
        bucket_name: str,
        *,
        public: bool = False,
        expires: timedelta = timedelta(days=7),
        client=None,
    ) -> None:
        if not bucket_name:
            raise ValueError("GCS_BUCKET is required when STORAGE_BACKEND is 'gcs'")
        if client is None:
            from google.cloud import storage  # type: ignore

            client = storage.Client()
        self._bucket = client.bucket(bucket_name)
        self.bucket_name = bucket_name
        self.public = public
        self.expires = expires

    def save(
        self, key: str, data: bytes, content_type: str, timeout: Optional[float] = None
    ) -> PublishedAsset:
        # The client library applies its own 60s default when no timeout is given.
        kwargs = {"timeout": timeout} if timeout is not None else {}
        blob = self._bucket.blob(key)
        blob.upload_from_string(data, content_type=content_type, **kwargs)
        if self.public:
            blob.make_public(**kwargs)
            url = blob.public_url
        else:
            url = blob.generate_signed_url(expiration=self.expires, version="v4")
        return PublishedAsset(url=url, bytes=blob.size or len(data))


class Publisher:
    """Upload finished renders to an :class:`AssetStore`.

    Args:
        store: The backend to write to.
        folder: Folder/category every render is stored under.
        timeout: Seconds the store is given to finish the upload.
        grace: Extra seconds to wait for a store that ignores its timeout
            before the publish is abandoned.
    """

    def __init__(
        self,
        store: AssetStore,
        folder: str = "renders",
        timeout: float = 30.0,
        grace: float = 5.0,
    ) -> None:
        self.store = store
        self.folder = folder.strip("/")
        self.timeout = timeout
        self.grace = grace

    def _key(self) -> str:
        name = f"{uuid.uuid4().hex}.jpg"
        return f"{self.folder}/{name}" if self.folder else name

    async def publish(self, data: bytes) -> PublishedAsset:
        """Store ``data`` as a JPEG image and return its URL and size.

        The store is called in a worker thread so blocking SDKs do not hold
        up the event loop. The timeout is handed to the store itself, which
        aborts the upload; the wait here only backs that up.

        Raises:
            PublishError: If the store fails or does not answer in time.
        """
        key = self._key()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.save, key, data, JPEG_CONTENT_TYPE, self.timeout),
                timeout=self.timeout + self.grace,
            )
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise PublishError(f"Upload of {key} timed out after {self.timeout}s") from exc
        except PublishError:
            raise
        except Exception as exc:
            raise PublishError(f"Upload of {key} failed: {exc}") from exc


def build_publisher(
    backend: str = config.STORAGE_BACKEND,
    *,
    folder: str = config.PUBLISH_FOLDER,
    timeout: float = config.PUBLISH_TIMEOUT,
) -> Optional[Publisher]:
    """Create the publisher described by the environment, or ``None``.

    Raises:
        ValueError: If the backend name is unknown or misconfigured.
    """
    backend = (backend or "none").lower()
    if backend == "none":
        return None
    if backend == "local":
        store: AssetStore = LocalAssetStore(config.IMAGE_LIBRARY_DIR)
    elif backend == "gcs":
        store = GCSAssetStore(
            config.GCS_BUCKET,
            public=config.PUBLIC_IMAGES,
            expires=timedelta(seconds=config.SIGNED_URL_EXPIRES),
        )
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend}' (expected local, gcs or none)")
    return Publisher(store, folder=folder, timeout=timeout)
