from __future__ import annotations
"""Filesystem-style adapter over the object storage service."""
import logging
from typing import Any, Callable, Iterator, Mapping, Optional

import httpx

from .config import ClientConfig
from .errors import ConfigurationError
from .listing import DELIMITER, iter_entries, iter_pages
from .models import ListingEntry, ListingPage, ObjectMetadata, Visibility, WriteResult
from .paths import normalize_key
from .services import CancelFn, ObjectStream, ProgressFn, StorageService

LOGGER = logging.getLogger(__name__)


class StorageAdapter:
    """Maps filesystem verbs onto the remote object API.

    Every method is a self-contained exchange; an instance can be shared
    between threads. Absent objects are reported through return values
    (``None``/``False``); rejected requests raise :class:`RejectedError` and an
    unavailable service raises :class:`TransportError`.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        service: StorageService | None = None,
        client_factory: Callable[..., httpx.Client] | None = None,
    ):
        self._config = config
        self._service = service or StorageService(config, client_factory=client_factory)

    @classmethod
    def from_environment(cls, **kwargs: Any) -> "StorageAdapter":
        return cls(ClientConfig.from_environment(), **kwargs)

    @classmethod
    def from_options(cls, options: Mapping[str, Any], **kwargs: Any) -> "StorageAdapter":
        return cls(ClientConfig.from_options(options), **kwargs)

    @property
    def config(self) -> ClientConfig:
        return self._config

    def close(self) -> None:
        self._service.close()

    def __enter__(self) -> "StorageAdapter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Writing

    def write(
        self,
        path: str,
        contents: bytes | str,
        *,
        visibility: Visibility | str | None = None,
        content_type: str | None = None,
    ) -> WriteResult:
        if not isinstance(contents, (bytes, bytearray, memoryview, str)):
            raise TypeError("write() expects bytes or str; use write_stream() for file objects")
        return self._upload(path, contents, visibility=visibility, content_type=content_type)

    def write_stream(
        self,
        path: str,
        stream: Any,
        *,
        visibility: Visibility | str | None = None,
        content_type: str | None = None,
        progress_callback: ProgressFn = None,
        cancel_requested: CancelFn = None,
    ) -> WriteResult:
        if isinstance(stream, (bytes, bytearray, str)):
            raise TypeError("write_stream() expects a file object or an iterable of bytes")
        return self._upload(
            path,
            stream,
            visibility=visibility,
            content_type=content_type,
            progress_callback=progress_callback,
            cancel_requested=cancel_requested,
        )

    def update(self, path: str, contents: bytes | str, **options: Any) -> WriteResult:
        return self.write(path, contents, **options)

    def update_stream(self, path: str, stream: Any, **options: Any) -> WriteResult:
        return self.write_stream(path, stream, **options)

    def create_dir(self, dirname: str, *, visibility: Visibility | str | None = None) -> WriteResult:
        """Create a directory marker: a zero-length object whose key ends with ``/``."""

        key = normalize_key(dirname, directory=True)
        if not key:
            raise ValueError("Cannot create the root directory")
        return self._service.put_object(
            key, b"", visibility=visibility, content_type="application/x-directory"
        )

    # Copy, rename and delete

    def copy(self, path: str, new_path: str) -> bool:
        """Copy an object; returns ``False`` when the source does not exist."""

        source = self._require_key(path)
        target = self._require_key(new_path)
        copied = self._service.copy_object(source, target)
        if not copied:
            LOGGER.debug("Copy source '%s' does not exist", source)
        return copied

    def rename(self, path: str, new_path: str) -> bool:
        """Copy ``path`` to ``new_path`` and then delete ``path``.

        Not atomic: if the process stops between the two requests both keys
        exist. The source is only deleted once the copy has succeeded.
        """

        if not self.copy(path, new_path):
            return False
        return self.delete(path)

    def delete(self, path: str) -> bool:
        """Delete an object. Deleting a missing object also succeeds."""

        self._service.delete_object(self._require_key(path))
        return True

    def delete_dir(self, dirname: str, *, recursive: bool = False) -> bool:
        """Delete the directory marker ``dirname/``.

        Objects below the directory are left alone unless ``recursive`` is set,
        in which case every key under the prefix is listed and deleted one by
        one before the marker.
        """

        marker = normalize_key(dirname, directory=True)
        if not marker:
            raise ValueError("Refusing to delete the root directory")
        if recursive:
            # Materialize first so deletes do not shift the pages being read.
            keys = [
                normalize_key(metadata.key, directory=metadata.is_directory)
                for page in self.list_pages(dirname, recursive=True)
                for metadata in page.objects
            ]
            for key in keys:
                if key != marker:
                    self._service.delete_object(key)
            LOGGER.debug("Deleted %d objects under '%s'", len(keys), marker)
        self._service.delete_object(marker)
        return True

    # Reading

    def has(self, path: str) -> bool:
        return self.get_metadata(path) is not None

    def read(self, path: str) -> Optional[bytes]:
        return self._service.get_object(self._require_key(path))

    def read_stream(
        self,
        path: str,
        *,
        progress_callback: ProgressFn = None,
        cancel_requested: CancelFn = None,
    ) -> Optional[ObjectStream]:
        """Open an object for streaming; the caller must close the result."""

        return self._service.open_object(
            self._require_key(path),
            progress_callback=progress_callback,
            cancel_requested=cancel_requested,
        )

    def list_contents(self, directory: str = "", recursive: bool = False) -> Iterator[ListingEntry]:
        """Lazily list a directory, fetching further pages as entries are consumed."""

        pages = self.list_pages(directory, recursive=recursive)
        return iter_entries(pages, directory=directory, recursive=recursive)

    def list_pages(
        self,
        directory: str = "",
        recursive: bool = False,
        *,
        max_keys: int | None = None,
    ) -> Iterator[ListingPage]:
        return iter_pages(
            self._service,
            prefix=normalize_key(directory, directory=True),
            delimiter=None if recursive else DELIMITER,
            max_keys=max_keys,
        )

    # Metadata

    def get_metadata(self, path: str) -> Optional[ObjectMetadata]:
        key = normalize_key(path, directory=(path or "").endswith("/"))
        if not key:
            return None
        return self._service.get_object_metadata(key)

    def get_size(self, path: str) -> Optional[int]:
        metadata = self.get_metadata(path)
        return metadata.size if metadata else None

    def get_mimetype(self, path: str) -> Optional[str]:
        metadata = self.get_metadata(path)
        return metadata.content_type if metadata else None

    def get_timestamp(self, path: str) -> Optional[int]:
        metadata = self.get_metadata(path)
        return metadata.last_modified if metadata else None

    def get_url(self, path: str) -> str:
        if not self._config.namespace:
            raise ConfigurationError("namespace is required to build public URLs")
        return self._service.public_url(normalize_key(path))

    def _upload(self, path: str, contents: Any, **options: Any) -> WriteResult:
        return self._service.put_object(self._require_key(path), contents, **options)

    @staticmethod
    def _require_key(path: str) -> str:
        key = normalize_key(path)
        if not key:
            raise ValueError("Path must name an object, not the root directory")
        return key
