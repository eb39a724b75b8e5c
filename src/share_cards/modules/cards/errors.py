from __future__ import annotations


class ShareCardError(Exception):
    pass


class InvalidRequest(ShareCardError):
    pass


class EntityNotFound(ShareCardError):
    pass


class RenderFailure(ShareCardError):
    pass


class StorageWriteFailure(ShareCardError):
    """Upload failed after a successful render; ``body`` holds the rendered image."""

    def __init__(self, message: str, *, body: bytes, storage_path: str):
        super().__init__(message)
        self.body = body
        self.storage_path = storage_path
