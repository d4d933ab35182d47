"""Block headers, the best-chain header list and block metadata."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Mapping, Optional

from chainrest.script import hash_to_hex, sha256d

MTP_SPAN = 11
DEFAULT_BLOCKHASH = bytes(32)

_HEADER_FORMAT = "<i32s32sIII"
_HEADER_SIZE = struct.calcsize(_HEADER_FORMAT)
_MAX_TARGET = 0xFFFF << 208
_U32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class BlockHeader:
    """An 80-byte block header; hashes are in internal byte order."""

    version: int
    prev_blockhash: bytes
    merkle_root: bytes
    time: int
    bits: int
    nonce: int

    def serialize(self) -> bytes:
        return struct.pack(
            _HEADER_FORMAT, self.version, self.prev_blockhash, self.merkle_root,
            self.time, self.bits, self.nonce,
        )

    def block_hash(self) -> bytes:
        return sha256d(self.serialize())

    def _target(self) -> int:
        exponent = self.bits >> 24
        if exponent <= 3:
            mantissa, shift = (self.bits & 0xFFFFFF) >> (8 * (3 - exponent)), 0
        else:
            mantissa, shift = self.bits & 0xFFFFFF, 8 * (exponent - 3)
        if mantissa > 0x7FFFFF:
            return 0
        return mantissa << shift

    def difficulty(self) -> float:
        """Difficulty relative to the maximum proof-of-work target."""
        target = self._target()
        if target == 0:
            return math.inf
        return _MAX_TARGET / target


def deserialize_header(data: bytes) -> BlockHeader:
    """Parse an 80-byte header; raise ValueError on a wrong length."""
    data = bytes(data)
    if len(data) != _HEADER_SIZE:
        raise ValueError(f"block header must be {_HEADER_SIZE} bytes, got {len(data)}")
    return BlockHeader(*struct.unpack(_HEADER_FORMAT, data))


@dataclass(frozen=True)
class BlockId:
    height: int
    hash: bytes
    time: int


@dataclass(frozen=True)
class HeaderEntry:
    height: int
    hash: bytes
    header: BlockHeader

    def block_id(self) -> BlockId:
        return BlockId(self.height, self.hash, self.header.time)

    def __str__(self) -> str:
        when = datetime.fromtimestamp(self.header.time, tz=timezone.utc)
        stamp = when.isoformat().replace("+00:00", "Z")
        return f"hash={hash_to_hex(self.hash)} height={self.height} @ {stamp}"


class HeaderList:
    """The best chain of headers, indexed by height and by hash."""

    def __init__(self) -> None:
        self._headers: list[HeaderEntry] = []
        self._heights: dict[bytes, int] = {}
        self._tip = DEFAULT_BLOCKHASH

    def order(self, new_headers) -> list[HeaderEntry]:
        """Assign heights to a run of consecutive headers (last one is the tip)."""
        hashed = [(header.block_hash(), header) for header in new_headers]
        for (prev_hash, _), (_, header) in zip(hashed, hashed[1:]):
            if header.prev_blockhash != prev_hash:
                raise ValueError("headers do not form a chain")
        if not hashed:
            return []
        prev_blockhash = hashed[0][1].prev_blockhash
        if prev_blockhash == DEFAULT_BLOCKHASH:
            new_height = 0
        else:
            parent = self.header_by_blockhash(prev_blockhash)
            if parent is None:
                raise LookupError(
                    f"{hash_to_hex(prev_blockhash)} is not part of the blockchain"
                )
            new_height = parent.height + 1
        return [
            HeaderEntry(height, blockhash, header)
            for height, (blockhash, header) in enumerate(hashed, start=new_height)
        ]

    def apply(self, new_headers) -> None:
        """Replace everything from the first new height onwards with `new_headers`."""
        new_headers = list(new_headers)
        for prev, entry in zip(new_headers, new_headers[1:]):
            if prev.height + 1 != entry.height:
                raise ValueError("header heights are not consecutive")
            if prev.hash != entry.header.prev_blockhash:
                raise ValueError("headers do not form a chain")
        if not new_headers:
            return
        first = new_headers[0]
        new_height = first.height
        if new_height > 0:
            if new_height - 1 >= len(self._headers):
                raise ValueError(f"no header at height {new_height - 1} to connect to")
            expected_prev = self._headers[new_height - 1].hash
        else:
            expected_prev = DEFAULT_BLOCKHASH
        if first.header.prev_blockhash != expected_prev:
            raise ValueError("new headers do not connect to the chain")
        del self._headers[new_height:]
        for entry in new_headers:
            self._tip = entry.hash
            self._headers.append(entry)
            self._heights[entry.hash] = entry.height

    def header_by_blockhash(self, blockhash: bytes) -> Optional[HeaderEntry]:
        height = self._heights.get(blockhash)
        if height is None or height >= len(self._headers):
            return None
        entry = self._headers[height]
        return entry if entry.hash == blockhash else None

    def header_by_height(self, height: int) -> Optional[HeaderEntry]:
        if 0 <= height < len(self._headers):
            return self._headers[height]
        return None

    def equals(self, other: "HeaderList") -> bool:
        mine = self._headers[-1] if self._headers else None
        theirs = other._headers[-1] if other._headers else None
        return mine == theirs

    def tip(self) -> bytes:
        return self._tip

    def __len__(self) -> int:
        return len(self._headers)

    def __iter__(self) -> Iterator[HeaderEntry]:
        return iter(self._headers)

    def get_mtp(self, height: int) -> int:
        """Median time past; the genesis block uses its own timestamp."""
        if height == 0:
            if not self._headers:
                raise LookupError("header list is empty")
            return self._headers[0].header.time
        if height > len(self._headers) - 1:
            return 0
        start = max(0, height - (MTP_SPAN - 1))
        times = sorted(entry.header.time for entry in self._headers[start:height + 1])
        return times[len(times) // 2]


def build_header_list(headers_map: Mapping[bytes, BlockHeader], tip_hash: bytes) -> HeaderList:
    """Build the chain ending at `tip_hash`, ignoring orphaned headers."""
    remaining = dict(headers_map)
    chain: list[BlockHeader] = []
    blockhash = tip_hash
    while blockhash != DEFAULT_BLOCKHASH:
        header = remaining.pop(blockhash, None)
        if header is None:
            pointed_from = hash_to_hex(chain[-1].block_hash()) if chain else None
            raise LookupError(
                f"missing expected blockhash in headers map: {hash_to_hex(blockhash)}, "
                f"pointed from: {pointed_from}"
            )
        blockhash = header.prev_blockhash
        chain.append(header)
    chain.reverse()
    headers = HeaderList()
    headers.apply(headers.order(chain))
    return headers


@dataclass(frozen=True)
class BlockStatus:
    in_best_chain: bool
    height: Optional[int] = None
    next_best: Optional[bytes] = None

    def to_dict(self) -> dict:
        return {
            "in_best_chain": self.in_best_chain,
            "height": self.height,
            "next_best": None if self.next_best is None else hash_to_hex(self.next_best),
        }


def block_confirmed(height: int, next_best: Optional[bytes]) -> BlockStatus:
    return BlockStatus(True, height, next_best)


def block_orphaned() -> BlockStatus:
    return BlockStatus(False, None, None)


@dataclass(frozen=True)
class BlockMeta:
    tx_count: int
    size: int
    weight: int


@dataclass(frozen=True)
class BlockHeaderMeta:
    header_entry: HeaderEntry
    meta: BlockMeta
    mtp: int


def _field_as_u32(val: Mapping, key: str) -> int:
    if key not in val:
        raise ValueError(f"missing {key}")
    value = val[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} not a number")
    if isinstance(value, float) and math.isnan(value):
        return 0
    if value <= 0:
        return 0
    if value >= _U32_MAX:
        return _U32_MAX
    return int(value)


def parse_getblock(val: Mapping) -> BlockMeta:
    """Read block metadata from a `getblock` RPC result."""
    return BlockMeta(
        tx_count=_field_as_u32(val, "nTx"),
        size=_field_as_u32(val, "size"),
        weight=_field_as_u32(val, "weight"),
    )