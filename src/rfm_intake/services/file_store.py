from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Literal, Union

from rfm_intake.schemas import ShareholderDocType


@dataclass(frozen=True)
class RawFile:
    name: str
    content_type: str
    payload_bytes: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.payload_bytes)


@dataclass(frozen=True)
class SlotKey:
    slot_id: str
    kind: Literal["slot"] = "slot"

    @property
    def display_id(self) -> str:
        return self.slot_id


@dataclass(frozen=True)
class ShareholderDocKey:
    shareholder_id: str
    doc_type: ShareholderDocType
    kind: Literal["shareholder_doc"] = "shareholder_doc"

    @property
    def display_id(self) -> str:
        return f"kyc/{self.shareholder_id}/{self.doc_type}"


StoreKey = Union[SlotKey, ShareholderDocKey]


class RawFileStore:
    """Raw upload blobs keyed by slot or shareholder document.

    Order within a key mirrors the order of the matching UploadedFile records;
    callers remove by index so both sides stay in lockstep.
    """

    def __init__(self) -> None:
        self._files: dict[StoreKey, list[RawFile]] = {}

    def append(self, key: StoreKey, raw_files: list[RawFile]) -> None:
        self._files.setdefault(key, []).extend(raw_files)

    def get(self, key: StoreKey) -> list[RawFile]:
        return list(self._files.get(key, ()))

    def remove_at(self, key: StoreKey, index: int) -> RawFile | None:
        files = self._files.get(key)
        if files is None or not 0 <= index < len(files):
            return None
        removed = files.pop(index)
        if not files:
            del self._files[key]
        return removed

    def drop(self, key: StoreKey) -> None:
        self._files.pop(key, None)

    def drop_shareholder(self, shareholder_id: str) -> None:
        for key in [
            key
            for key in self._files
            if isinstance(key, ShareholderDocKey) and key.shareholder_id == shareholder_id
        ]:
            del self._files[key]

    def clear(self) -> None:
        self._files.clear()

    def items(self) -> Iterator[tuple[StoreKey, list[RawFile]]]:
        for key, files in self._files.items():
            yield key, list(files)

    def __len__(self) -> int:
        return sum(len(files) for files in self._files.values())


__all__ = [
    "RawFile",
    "RawFileStore",
    "ShareholderDocKey",
    "SlotKey",
    "StoreKey",
]
