from __future__ import annotations
"""Directory listings assembled from paged list responses."""
import logging
from typing import Iterable, Iterator, Optional, Protocol

from .errors import StorageError
from .models import ListingEntry, ListingPage
from .paths import SEPARATOR, ancestors, dirname, normalize_key

LOGGER = logging.getLogger(__name__)

DELIMITER = SEPARATOR


class PageSource(Protocol):
    def list_objects(
        self,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListingPage: ...


def iter_pages(
    source: PageSource,
    *,
    prefix: str = "",
    delimiter: str | None = None,
    max_keys: Optional[int] = None,
) -> Iterator[ListingPage]:
    """Yield pages in order, following continuation tokens until none is left.

    Each page is requested only after the previous one has been consumed.
    """

    token: str | None = None
    seen_tokens: set[str] = set()
    page_number = 1
    while True:
        page = source.list_objects(
            prefix=prefix,
            delimiter=delimiter,
            continuation_token=token,
            max_keys=max_keys,
        )
        LOGGER.debug(
            "Listed page %d of '%s' (%d objects, %d prefixes)",
            page_number,
            prefix,
            len(page.objects),
            len(page.common_prefixes),
        )
        yield page
        token = page.continuation_token
        if not token:
            return
        if token in seen_tokens:
            raise StorageError(f"Listing of '{prefix}' returned continuation token {token!r} twice")
        seen_tokens.add(token)
        page_number += 1


def iter_entries(
    pages: Iterable[ListingPage],
    *,
    directory: str = "",
    recursive: bool = False,
) -> Iterator[ListingEntry]:
    """Normalize page contents into listing entries.

    Directories come from common prefixes, explicit marker objects and, for
    keys nested below the listed level, from the key's parents. Each directory
    is yielded once no matter how many children imply it. The marker of the
    listed directory itself is skipped.
    """

    base = normalize_key(directory)
    emitted_dirs: set[str] = set()

    def directory_entries(path: str) -> Iterator[ListingEntry]:
        candidates = ancestors(path) + [path] if recursive else [_immediate_child(base, path)]
        for candidate in candidates:
            if candidate in emitted_dirs or not _is_below(base, candidate):
                continue
            emitted_dirs.add(candidate)
            yield ListingEntry.for_directory(candidate)

    for page in pages:
        for metadata in page.objects:
            path = normalize_key(metadata.key)
            if not _is_below(base, path):
                continue
            if metadata.is_directory:
                yield from directory_entries(path)
                continue
            if recursive:
                yield from directory_entries(dirname(path))
            elif dirname(path) != base:
                yield from directory_entries(path)
                continue
            yield ListingEntry.from_metadata(metadata)
        for prefix in page.common_prefixes:
            path = normalize_key(prefix)
            if path:
                yield from directory_entries(path)


def _is_below(base: str, path: str) -> bool:
    if not path or path == base:
        return False
    return not base or path.startswith(base + SEPARATOR)


def _immediate_child(base: str, path: str) -> str:
    relative = path[len(base) + 1 :] if base else path
    head = relative.split(SEPARATOR, 1)[0]
    return f"{base}{SEPARATOR}{head}" if base else head
