"""Key store — the deduplicated, order-preserving credential registry."""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence

import structlog

logger = structlog.get_logger(__name__)


class KeyStore:
    """Immutable ordered set of configured credentials."""

    def __init__(self, credentials: Sequence[str] = ()) -> None:
        self._credentials: tuple[str, ...] = tuple(credentials)

    @classmethod
    def load(cls, raw_values: Iterable[str | None]) -> KeyStore:
        """Build a store from raw config values.

        Empty, whitespace-only and ``None`` entries are dropped; duplicates
        collapse onto their first occurrence. An empty result is not an
        error, callers check ``count()``.
        """
        seen: dict[str, None] = {}
        for value in raw_values:
            if value is None:
                continue
            key = value.strip()
            if key:
                seen.setdefault(key, None)

        store = cls(tuple(seen))
        if store.count() == 0:
            logger.error("key_store_empty", hint="set GEMINI_API_KEY or GEMINI_API_KEY1..10")
        else:
            logger.info("key_store_loaded", key_count=store.count())
        return store

    def count(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> tuple[str, ...]:
        return self._credentials

    def __getitem__(self, index: int) -> str:
        return self._credentials[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __contains__(self, credential: object) -> bool:
        return credential in self._credentials
