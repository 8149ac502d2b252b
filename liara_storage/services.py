from __future__ import annotations
"""Request construction and response normalization for the object API."""
import io
import logging
import mimetypes
import os
from collections.abc import Iterable
from typing import Any, Callable, Iterator, Optional
from urllib.parse import quote

import httpx

from .config import ClientConfig
from .errors import StorageError, TransferCancelledError, TransportError
from .models import ListingPage, ObjectMetadata, Visibility, WriteResult
from .paths import normalize_key
from .transport import HttpTransport

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

KEY_HEADER = "X-Liara-Object-Key"
SIZE_HEADER = "X-Liara-Object-Size"
ACL_HEADER = "X-Liara-Object-Acl"

ProgressFn = Optional[Callable[[int], None]]
CancelFn = Optional[Callable[[], bool]]


class ObjectStream:
    """Lazily consumed object body.

    The underlying connection stays checked out until :meth:`close` is called,
    so use it as a context manager::

        with service.open_object("a.txt") as stream:
            for chunk in stream:
                ...
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        key: str,
        chunk_size: int = CHUNK_SIZE,
        progress_callback: ProgressFn = None,
        cancel_requested: CancelFn = None,
    ):
        self._response = response
        self.key = key
        self._chunk_size = chunk_size
        self._progress = progress_callback
        self._cancel = cancel_requested
        self._transferred = 0
        self._closed = False
        length = response.headers.get("Content-Length")
        self.content_length: Optional[int] = int(length) if length and length.isdigit() else None
        self.content_type: Optional[str] = response.headers.get("Content-Type")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "ObjectStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def iter_chunks(self) -> Iterator[bytes]:
        if self._closed:
            raise StorageError(f"Stream for '{self.key}' is closed")
        try:
            for chunk in self._response.iter_bytes(self._chunk_size):
                self._check_cancel()
                self._transferred += len(chunk)
                if self._progress:
                    self._progress(self._transferred)
                yield chunk
            _verify_length(self._response, self.key, self._transferred)
        except httpx.TransportError as exc:
            raise TransportError(f"Reading '{self.key}' was interrupted: {exc}") from exc
        finally:
            self.close()

    def read(self) -> bytes:
        """Return the whole body and release the connection."""

        return b"".join(self.iter_chunks())

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._response.close()

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            self.close()

    def _check_cancel(self) -> None:
        if self._cancel and self._cancel():
            raise TransferCancelledError("Transfer cancelled by user")


class StorageService:
    """One method per endpoint of the remote object API."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: HttpTransport | None = None,
        client_factory: Callable[..., httpx.Client] | None = None,
    ):
        self._config = config
        self._transport = transport or HttpTransport(config, client_factory=client_factory)
        self._root = config.root_path

    @property
    def config(self) -> ClientConfig:
        return self._config

    def close(self) -> None:
        self._transport.close()

    def put_object(
        self,
        key: str,
        contents: Any,
        *,
        visibility: Visibility | str | None = None,
        content_type: str | None = None,
        progress_callback: ProgressFn = None,
        cancel_requested: CancelFn = None,
    ) -> WriteResult:
        """Create or replace the object stored at ``key``.

        ``contents`` may be ``bytes``, ``str``, a binary file object or an
        iterable of ``bytes`` chunks. Seekable sources are measured up front and
        rewound between retries; anything else is sent once as a chunked upload.
        """

        acl = Visibility.coerce(visibility)
        body = _UploadBody(contents, progress_callback, cancel_requested)
        headers = {
            KEY_HEADER: _quote_key(key),
            ACL_HEADER: acl.value,
            "Content-Type": content_type or _guess_content_type(key),
        }
        if body.size is not None:
            headers[SIZE_HEADER] = str(body.size)
            headers["Content-Length"] = str(body.size)

        LOGGER.debug("Uploading '%s' (%s bytes, %s)", key, body.size, acl.value)
        response = self._transport.request(
            "POST",
            self._objects_path(),
            headers=headers,
            content=body.open,
            replayable=body.replayable,
        )
        response.close()
        size = body.size if body.size is not None else body.sent
        return WriteResult(key=key, size=size, visibility=acl)

    def get_object(self, key: str) -> Optional[bytes]:
        response = self._transport.request("GET", self._object_path(key), not_found_ok=True)
        if response.status_code == 404:
            return None
        _verify_length(response, key, len(response.content))
        return response.content

    def open_object(
        self,
        key: str,
        *,
        chunk_size: int = CHUNK_SIZE,
        progress_callback: ProgressFn = None,
        cancel_requested: CancelFn = None,
    ) -> Optional[ObjectStream]:
        response = self._transport.request(
            "GET", self._object_path(key), stream=True, not_found_ok=True
        )
        if response.status_code == 404:
            response.close()
            return None
        return ObjectStream(
            response,
            key=key,
            chunk_size=chunk_size,
            progress_callback=progress_callback,
            cancel_requested=cancel_requested,
        )

    def get_object_metadata(self, key: str) -> Optional[ObjectMetadata]:
        path = f"{self._objects_path()}/metadata/{_quote_key(key)}"
        response = self._transport.request("GET", path, not_found_ok=True)
        if response.status_code == 404:
            return None
        payload = _json_object(response)
        if isinstance(payload.get("metadata"), dict):
            payload = payload["metadata"]
        return ObjectMetadata.from_api(payload, key=key)

    def delete_object(self, key: str) -> None:
        response = self._transport.request("DELETE", self._object_path(key), not_found_ok=True)
        if response.status_code == 404:
            LOGGER.debug("Delete of '%s' found nothing to remove", key)

    def copy_object(self, key: str, new_key: str) -> bool:
        """Copy ``key`` to ``new_key``; returns ``False`` if ``key`` does not exist."""

        response = self._transport.request(
            "POST",
            f"{self._objects_path()}/copy",
            json={"key": key, "newKey": new_key},
            not_found_ok=True,
        )
        return response.status_code != 404

    def list_objects(
        self,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListingPage:
        params = {
            "prefix": prefix,
            "delimiter": delimiter,
            "continuationToken": continuation_token,
            "maxKeys": max_keys or self._config.page_size,
        }
        response = self._transport.request("GET", f"{self._objects_path()}/list", params=params)
        payload = _json_object(response)
        objects = [
            ObjectMetadata.from_api(entry)
            for entry in payload.get("objects") or payload.get("contents") or []
            if isinstance(entry, dict)
        ]
        prefixes = [
            entry.get("prefix", "") if isinstance(entry, dict) else str(entry)
            for entry in payload.get("commonPrefixes") or []
        ]
        token = payload.get("nextContinuationToken") or None
        return ListingPage(
            objects=objects,
            common_prefixes=[item for item in prefixes if item],
            continuation_token=token,
        )

    def public_url(self, key: str) -> str:
        return f"{self._config.base_url}/{self._config.namespace}/{_quote_key(key)}"

    def _objects_path(self) -> str:
        return f"{self._root}/objects"

    def _object_path(self, key: str) -> str:
        return f"{self._objects_path()}/{_quote_key(key)}"


class _UploadBody:
    """Produces a fresh request body per attempt."""

    def __init__(self, contents: Any, progress_callback: ProgressFn, cancel_requested: CancelFn):
        self._progress = progress_callback
        self._cancel = cancel_requested
        self._source: Any = contents
        self._start: Optional[int] = None
        self._opened = False
        self.sent = 0
        self.size: Optional[int] = None
        self.replayable = True

        if contents is None:
            self._source = b""
        elif isinstance(contents, str):
            self._source = contents.encode("utf-8")
        elif isinstance(contents, (bytearray, memoryview)):
            self._source = bytes(contents)

        if isinstance(self._source, bytes):
            self.size = len(self._source)
        elif isinstance(self._source, io.TextIOBase):
            # Encoded size is unknown until the text has been read.
            self.replayable = False
        elif hasattr(self._source, "read"):
            self.size = _remaining_size(self._source)
            if self.size is not None:
                self._start = self._source.tell()
            else:
                self.replayable = False
        elif isinstance(self._source, Iterable):
            self.replayable = False
        else:
            raise TypeError(f"Unsupported upload body: {type(contents).__name__}")

    def open(self) -> Any:
        if self._opened and not self.replayable:
            raise StorageError("Upload body cannot be replayed")
        self._opened = True
        self.sent = 0
        if isinstance(self._source, bytes) and not (self._progress or self._cancel):
            self.sent = len(self._source)
            return self._source
        if self._start is not None:
            self._source.seek(self._start)
        return self._chunks()

    def _chunks(self) -> Iterator[bytes]:
        for chunk in self._iter_source():
            if not chunk:
                continue
            self._check_cancel()
            self.sent += len(chunk)
            yield chunk
            if self._progress:
                self._progress(self.sent)
        self._check_cancel()

    def _iter_source(self) -> Iterator[bytes]:
        source = self._source
        if isinstance(source, bytes):
            for offset in range(0, len(source), CHUNK_SIZE):
                yield source[offset : offset + CHUNK_SIZE]
        elif hasattr(source, "read"):
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
        else:
            for chunk in source:
                yield chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)

    def _check_cancel(self) -> None:
        if self._cancel and self._cancel():
            raise TransferCancelledError("Transfer cancelled by user")


def _remaining_size(file_obj: Any) -> Optional[int]:
    try:
        if not file_obj.seekable():
            return None
        current = file_obj.tell()
        end = file_obj.seek(0, os.SEEK_END)
        file_obj.seek(current)
    except (AttributeError, OSError, ValueError):
        return None
    return max(end - current, 0)


def _quote_key(key: str) -> str:
    return quote(key, safe="/")


def _guess_content_type(key: str) -> str:
    guessed, _ = mimetypes.guess_type(normalize_key(key))
    return guessed or "application/octet-stream"


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise StorageError(f"Invalid JSON in response from {response.request.url}") from exc
    if not isinstance(payload, dict):
        raise StorageError(f"Unexpected response shape from {response.request.url}")
    return payload


def _verify_length(response: httpx.Response, key: str, received: int) -> None:
    """Compare the decoded body size against ``Content-Length``.

    With a ``Content-Encoding`` the header counts encoded bytes, so the check
    is skipped.
    """

    expected = response.headers.get("Content-Length")
    if not expected or not expected.isdigit() or response.headers.get("Content-Encoding"):
        return
    if received < int(expected):
        raise TransportError(
            f"Body for '{key}' was truncated: expected {expected} bytes, received {received}"
        )
