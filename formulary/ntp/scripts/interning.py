#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Stable integer ids for canonical NTP / TM keys."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Optional

import pandas as pd

from ..constants import ID_OFFSET


class IdInterner:
    """Bijective key -> id table; ids are dense and start at ``offset + 1``.

    Keys passed to :meth:`intern_all` are sorted first, so the same key
    population always gets the same ids. A registry seeded from an earlier run
    keeps its ids and new keys continue after the current maximum.
    """

    def __init__(self, offset: int = ID_OFFSET, seed: Optional[Mapping[str, int]] = None) -> None:
        self.offset = offset
        self._ids: Dict[str, int] = {}
        self._next = offset + 1
        if seed:
            used: set[int] = set()
            for key, value in seed.items():
                value = int(value)
                if not key:
                    raise ValueError("Registry contains an empty key.")
                if value in used:
                    raise ValueError(f"Registry assigns id {value} to more than one key.")
                used.add(value)
                self._ids[key] = value
            self._next = max(self._next, max(used) + 1)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, key: object) -> bool:
        return key in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def get(self, key: str) -> Optional[int]:
        return self._ids.get(key)

    def intern(self, key: str) -> int:
        if not isinstance(key, str) or not key:
            raise ValueError(f"Cannot intern empty or non-string key: {key!r}")
        existing = self._ids.get(key)
        if existing is not None:
            return existing
        assigned = self._next
        self._ids[key] = assigned
        self._next += 1
        return assigned

    def intern_all(self, keys: Iterable[str]) -> Dict[str, int]:
        """Intern distinct keys in sorted order and return their ids."""
        return {key: self.intern(key) for key in sorted(set(keys))}

    def to_frame(self, key_column: str = "key", id_column: str = "id") -> pd.DataFrame:
        rows = sorted(self._ids.items(), key=lambda item: item[1])
        return pd.DataFrame(rows, columns=[key_column, id_column])

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        key_column: str = "key",
        id_column: str = "id",
        offset: int = ID_OFFSET,
    ) -> "IdInterner":
        seed: Dict[str, int] = {}
        for key, value in zip(frame[key_column], frame[id_column]):
            key = str(key)
            if key in seed:
                raise ValueError(f"Registry lists key {key!r} more than once.")
            seed[key] = int(value)
        return cls(offset=offset, seed=seed)

    @classmethod
    def load(cls, path: Path, offset: int = ID_OFFSET) -> "IdInterner":
        """Seed from a registry CSV written by :meth:`save`; a missing file starts empty."""
        path = Path(path)
        if not path.is_file():
            return cls(offset=offset)
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        return cls.from_frame(frame, offset=offset)

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(path, index=False)
        return path


__all__ = ["IdInterner"]
