from __future__ import annotations

from typing import Iterable, Mapping, Protocol, Sequence

from rfm_intake.schemas import DuplicateWarning
from rfm_intake.services.file_store import RawFile, RawFileStore, StoreKey


class _KeyedFiles(Protocol):
    def items(self) -> Iterable[tuple[StoreKey, Sequence[RawFile]]]: ...


def detect_duplicates(
    file_store: RawFileStore | Mapping[StoreKey, Sequence[RawFile]] | _KeyedFiles,
) -> list[DuplicateWarning]:
    """Report every (name, size) pair that appears under two or more store keys.

    Repeats inside a single key are not duplicates. Groups keep the order in
    which each pair and key were first seen.
    """
    seen: dict[tuple[str, int], DuplicateWarning] = {}
    for key, files in file_store.items():
        slot_name = key.display_id
        for raw_file in files:
            identity = (raw_file.name, raw_file.size)
            existing = seen.get(identity)
            if existing is None:
                seen[identity] = DuplicateWarning(
                    file_name=raw_file.name,
                    file_size=raw_file.size,
                    slots=[slot_name],
                )
            elif slot_name not in existing.slots:
                existing.slots.append(slot_name)

    return [warning for warning in seen.values() if len(warning.slots) > 1]


__all__ = ["detect_duplicates"]
