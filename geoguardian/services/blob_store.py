"""Blob storage for raw images, diff visualisations and time-lapse frames."""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from google.api_core.exceptions import NotFound
from google.cloud import storage
from pydantic import BaseModel, Field

from geoguardian.exceptions import BlobNotFoundError

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
}


class BlobInfo(BaseModel):
    """A stored blob reference together with its metadata."""
    ref: str
    content_type: str
    size: int
    metadata: Dict[str, str] = Field(default_factory=dict)


def _stringify(metadata: Optional[Dict[str, object]]) -> Dict[str, str]:
    # Object metadata is string-valued in GCS; keep the in-memory store identical
    return {key: str(value) for key, value in (metadata or {}).items()}


def _matches(metadata: Dict[str, str], query: Dict[str, object]) -> bool:
    return all(metadata.get(key) == str(value) for key, value in query.items())


class BlobStore(ABC):
    """
    Narrow contract the pipeline uses for binary data. References are opaque
    strings; callers never build or parse them.
    """

    @abstractmethod
    async def put(
        self, data: bytes, content_type: str, metadata: Optional[Dict[str, object]] = None
    ) -> str:
        """Store bytes and return a new reference."""

    @abstractmethod
    async def get(self, ref: str) -> bytes:
        """Return the bytes behind `ref`; raises BlobNotFoundError."""

    @abstractmethod
    async def find(self, query: Dict[str, object]) -> List[BlobInfo]:
        """Return every blob whose metadata contains all `query` pairs."""

    async def stat(self, ref: str) -> BlobInfo:
        """Return the BlobInfo for `ref`; raises BlobNotFoundError."""
        matches = [info for info in await self.find({}) if info.ref == ref]
        if not matches:
            raise BlobNotFoundError(ref)
        return matches[0]


class InMemoryBlobStore(BlobStore):
    """Process-local blob store used for local development and tests."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._info: Dict[str, BlobInfo] = {}
        self._lock = asyncio.Lock()

    async def put(
        self, data: bytes, content_type: str, metadata: Optional[Dict[str, object]] = None
    ) -> str:
        ref = uuid.uuid4().hex
        async with self._lock:
            self._blobs[ref] = bytes(data)
            self._info[ref] = BlobInfo(
                ref=ref, content_type=content_type, size=len(data), metadata=_stringify(metadata)
            )
        return ref

    async def get(self, ref: str) -> bytes:
        try:
            return self._blobs[ref]
        except KeyError:
            raise BlobNotFoundError(ref) from None

    async def find(self, query: Dict[str, object]) -> List[BlobInfo]:
        return [info for info in self._info.values() if _matches(info.metadata, query)]

    async def stat(self, ref: str) -> BlobInfo:
        try:
            return self._info[ref]
        except KeyError:
            raise BlobNotFoundError(ref) from None


class GCSBlobStore(BlobStore):
    """
    Google Cloud Storage backed blob store.

    Storage structure:
    gs://bucket/
        monitoring/<region_id>/<uuid>.jpg
        acquisitions/<uuid>.jpg
        comparisons/<uuid>.png
        timelapse/<sequence_id>/<uuid>.jpg
        misc/<uuid>.<ext>

    The blob name is the reference. The `google-cloud-storage` client is
    blocking, so every call runs in a worker thread.
    """

    def __init__(self, project_id: str, bucket_name: str):
        try:
            self.client = storage.Client(project=project_id)
            self.bucket = self.client.bucket(bucket_name)
            logger.info("GCS blob store ready for gs://%s", bucket_name)
        except Exception as e:
            logger.exception("Failed to initialise GCS client for bucket %s: %s", bucket_name, e)
            raise

    @staticmethod
    def _blob_name(content_type: str, metadata: Dict[str, str]) -> str:
        extension = _EXTENSIONS.get(content_type, "bin")
        kind = metadata.get("type")
        if kind == "monitoring" and "region_id" in metadata:
            prefix = f"monitoring/{metadata['region_id']}"
        elif kind == "timelapse_frame" and "sequence_id" in metadata:
            prefix = f"timelapse/{metadata['sequence_id']}"
        elif kind == "difference_map":
            prefix = "comparisons"
        elif kind == "acquisition":
            prefix = "acquisitions"
        else:
            prefix = "misc"
        return f"{prefix}/{uuid.uuid4().hex}.{extension}"

    @staticmethod
    def _query_prefix(query: Dict[str, object]) -> Optional[str]:
        kind = query.get("type")
        if kind == "timelapse_frame" and "sequence_id" in query:
            return f"timelapse/{query['sequence_id']}/"
        if kind == "monitoring" and "region_id" in query:
            return f"monitoring/{query['region_id']}/"
        return None

    async def put(
        self, data: bytes, content_type: str, metadata: Optional[Dict[str, object]] = None
    ) -> str:
        meta = _stringify(metadata)
        meta.setdefault("uploaded_at", datetime.now(timezone.utc).isoformat())
        blob_name = self._blob_name(content_type, meta)

        def _upload() -> None:
            blob = self.bucket.blob(blob_name)
            blob.metadata = meta
            blob.upload_from_string(data, content_type=content_type)

        await asyncio.to_thread(_upload)
        logger.info("Uploaded %d bytes to gs://%s/%s", len(data), self.bucket.name, blob_name)
        return blob_name

    async def get(self, ref: str) -> bytes:
        def _download() -> bytes:
            return self.bucket.blob(ref).download_as_bytes()

        try:
            return await asyncio.to_thread(_download)
        except NotFound:
            raise BlobNotFoundError(ref) from None

    async def find(self, query: Dict[str, object]) -> List[BlobInfo]:
        prefix = self._query_prefix(query)

        def _list() -> List[BlobInfo]:
            found = []
            for blob in self.client.list_blobs(self.bucket, prefix=prefix):
                metadata = blob.metadata or {}
                if _matches(metadata, query):
                    found.append(
                        BlobInfo(
                            ref=blob.name,
                            content_type=blob.content_type or "application/octet-stream",
                            size=blob.size or 0,
                            metadata=metadata,
                        )
                    )
            return found

        return await asyncio.to_thread(_list)

    async def stat(self, ref: str) -> BlobInfo:
        def _reload() -> BlobInfo:
            blob = self.bucket.get_blob(ref)
            if blob is None:
                raise BlobNotFoundError(ref)
            return BlobInfo(
                ref=blob.name,
                content_type=blob.content_type or "application/octet-stream",
                size=blob.size or 0,
                metadata=blob.metadata or {},
            )

        return await asyncio.to_thread(_reload)
