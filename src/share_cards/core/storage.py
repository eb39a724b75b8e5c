from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from share_cards.core.config import settings
from share_cards.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)

LOCAL_MEDIA_PREFIX = "/media"

_RETRYABLE_S3_CODES = {
    "RequestCanceled",
    "RequestTimeout",
    "Throttling",
    "ThrottlingException",
    "SlowDown",
    "InternalError",
    "ServiceUnavailable",
}


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int


class ObjectStorage:
    """Blob store addressed by key. ``put`` always overwrites."""

    backend = "none"

    def put(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str | None = None,
        cache_control: str | None = None,
    ) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def public_url(self, *, key: str) -> str:  # pragma: no cover
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    backend = "local"

    def __init__(self, root: Path, *, base_url: str | None = None):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = (base_url or settings.base_url).rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def put(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str | None = None,
        cache_control: str | None = None,
    ) -> StoredObject:
        # Local files carry no metadata; MediaFiles sends the blob Cache-Control header.
        start = time.monotonic()
        path = self._root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except Exception:
            log_exception(
                logger,
                "storage.put.failure",
                backend=self.backend,
                storage_key=key,
                byte_size=len(body),
            )
            raise
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            content_type=content_type,
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        path = self._root / key
        if not path.exists():
            raise StorageError(f"Object not found: {key}")
        return path.read_bytes()

    def delete(self, *, key: str) -> None:
        path = self._root / key
        if path.exists():
            path.unlink()

    def public_url(self, *, key: str) -> str:
        return f"{self._base_url}{LOCAL_MEDIA_PREFIX}/{quote(key)}"


class S3ObjectStorage(ObjectStorage):
    backend = "s3"
    max_attempts = 5

    def __init__(self) -> None:
        # S3-compatible providers report "auto"; boto3 needs a real region.
        region = settings.s3_region
        if not region or region.lower() == "auto":
            region = "us-east-1"
        self._region = region

        session = boto3.session.Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=region,
        )
        self._endpoint_url = settings.s3_endpoint_url or None
        config = Config(
            s3={"addressing_style": "virtual"},
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=30,
            read_timeout=60,
        )
        self._client = session.client("s3", endpoint_url=self._endpoint_url, config=config)
        self._bucket = settings.s3_bucket

    def _retry_delay_s(self, attempt: int) -> float:
        # attempt=1 => 0.25s, attempt=2 => 0.5s, ... capped at 3s
        return min(3.0, 0.25 * (2 ** (attempt - 1)))

    def _should_retry_error(self, error: Exception) -> bool:
        if isinstance(error, ClientError):
            code = (error.response.get("Error") or {}).get("Code")
            return code in _RETRYABLE_S3_CODES
        return isinstance(error, BotoCoreError)

    def put(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str | None = None,
        cache_control: str | None = None,
    ) -> StoredObject:
        start = time.monotonic()
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if cache_control:
            params["CacheControl"] = cache_control

        for attempt in range(1, self.max_attempts + 1):
            try:
                self._client.put_object(**params)
                break
            except Exception as e:  # noqa: BLE001
                if attempt < self.max_attempts and self._should_retry_error(e):
                    delay_s = self._retry_delay_s(attempt)
                    error_code = None
                    if isinstance(e, ClientError):
                        error_code = (e.response.get("Error") or {}).get("Code")
                    log_event(
                        logger,
                        "storage.put.retry",
                        backend=self.backend,
                        storage_key=key,
                        attempt=attempt,
                        delay_s=delay_s,
                        error_code=error_code,
                        error_type=type(e).__name__,
                    )
                    time.sleep(delay_s)
                    continue
                log_exception(
                    logger,
                    "storage.put.failure",
                    backend=self.backend,
                    storage_key=key,
                    byte_size=len(body),
                    attempt=attempt,
                )
                raise
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            content_type=content_type,
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            raise StorageError(f"Object not found: {key}") from e
        return resp["Body"].read()

    def delete(self, *, key: str) -> None:
        self._client.delete_object(Bucket=self._bucket, Key=key)

    def public_url(self, *, key: str) -> str:
        quoted = quote(key)
        if settings.s3_public_base_url:
            return f"{settings.s3_public_base_url.rstrip('/')}/{quoted}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{quoted}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{quoted}"


_storage: ObjectStorage | None = None


def local_storage_root() -> Path:
    root = settings.local_storage_path
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    return root


def get_storage() -> ObjectStorage:
    global _storage  # noqa: PLW0603
    if _storage is not None:
        return _storage

    if settings.storage_backend == "s3":
        _storage = S3ObjectStorage()
    else:
        _storage = LocalObjectStorage(local_storage_root())
    return _storage


def diagnose_storage(*, write_test: bool = False) -> dict[str, Any]:
    """
    Best-effort health check of the configured storage backend.

    With write_test=True a small object is written, read back and deleted.
    Never includes credentials in the result.
    """
    result: dict[str, Any] = {"ok": True, "backend": settings.storage_backend}
    start = time.monotonic()
    try:
        storage = get_storage()
    except Exception as e:  # noqa: BLE001
        return {**result, "ok": False, "error_type": type(e).__name__, "error": str(e)}
    if not write_test:
        return result

    key = f"diagnostics/healthz-{time.time_ns()}.txt"
    body = b"ok"
    try:
        storage.put(key=key, body=body, content_type="text/plain")
        out = storage.get(key=key)
        storage.delete(key=key)
    except Exception as e:  # noqa: BLE001
        result.update(ok=False, error_type=type(e).__name__, error=str(e))
        return result

    result["write_test"] = {
        "ok": out == body,
        "key": key,
        "duration_ms": monotonic_ms(start),
    }
    if out != body:
        result["ok"] = False
    return result


class MediaFiles(StaticFiles):
    """Static mount for local blobs; adds the Cache-Control an S3 object would carry."""

    async def get_response(self, path: str, scope: Scope) -> Response:
        response = await super().get_response(path, scope)
        if response.status_code in (200, 304):
            response.headers["Cache-Control"] = settings.share_card_cache_control
        return response
