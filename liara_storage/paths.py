from __future__ import annotations
"""Helpers for turning caller paths into object keys."""

SEPARATOR = "/"


def normalize_key(path: str | None, *, directory: bool = False) -> str:
    """Return the canonical object key for ``path``.

    Leading and trailing separators are trimmed and repeated separators are
    collapsed. ``""``, ``"/"`` and ``"."`` all map to the root key ``""``.
    When ``directory`` is true a single trailing separator is appended to
    non-root keys so the result names a directory marker object.
    """

    if not path:
        return ""
    parts = [part for part in path.split(SEPARATOR) if part and part != "."]
    key = SEPARATOR.join(parts)
    if directory and key:
        key += SEPARATOR
    return key


def join_key(*parts: str) -> str:
    return normalize_key(SEPARATOR.join(part for part in parts if part))


def dirname(key: str) -> str:
    """Return the parent key of ``key`` (``""`` for top-level keys)."""

    cleaned = normalize_key(key)
    if SEPARATOR not in cleaned:
        return ""
    return cleaned.rsplit(SEPARATOR, 1)[0]


def basename(key: str) -> str:
    cleaned = normalize_key(key)
    return cleaned.rsplit(SEPARATOR, 1)[-1]


def ancestors(key: str) -> list[str]:
    """Return every parent directory of ``key``, outermost first."""

    cleaned = normalize_key(key)
    parts = cleaned.split(SEPARATOR)[:-1] if cleaned else []
    return [SEPARATOR.join(parts[: index + 1]) for index in range(len(parts))]
