"""Transactions, their wire format and status helpers."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Mapping, Optional

from chainrest.script import Script, hash_to_hex, sha256d

_NULL_TXID = b"\0" * 32
_NULL_VOUT = 0xFFFFFFFF


@dataclass(frozen=True)
class OutPoint:
    """A reference to a transaction output; txid in internal byte order."""

    txid: bytes
    vout: int

    def is_null(self) -> bool:
        return self.txid == _NULL_TXID and self.vout == _NULL_VOUT


@dataclass
class TxIn:
    previous_output: OutPoint
    script_sig: Script = field(default_factory=Script)
    sequence: int = 0xFFFFFFFF
    witness: list = field(default_factory=list)


@dataclass
class TxOut:
    value: int
    script_pubkey: Script = field(default_factory=Script)


def _varint(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def _var_bytes(data: bytes) -> bytes:
    return _varint(len(data)) + data


@dataclass
class Transaction:
    version: int
    inputs: list
    outputs: list
    lock_time: int = 0

    def _has_witness(self) -> bool:
        return any(txin.witness for txin in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        segwit = include_witness and self._has_witness()
        parts = [struct.pack("<i", self.version)]
        if segwit:
            parts.append(b"\x00\x01")
        parts.append(_varint(len(self.inputs)))
        for txin in self.inputs:
            op = txin.previous_output
            parts += [op.txid, struct.pack("<I", op.vout),
                      _var_bytes(bytes(txin.script_sig)), struct.pack("<I", txin.sequence)]
        parts.append(_varint(len(self.outputs)))
        for txout in self.outputs:
            parts += [struct.pack("<Q", txout.value), _var_bytes(bytes(txout.script_pubkey))]
        if segwit:
            for txin in self.inputs:
                parts.append(_varint(len(txin.witness)))
                parts += [_var_bytes(bytes(item)) for item in txin.witness]
        parts.append(struct.pack("<I", self.lock_time))
        return b"".join(parts)

    def txid(self) -> bytes:
        """Transaction id in internal byte order."""
        return sha256d(self.serialize(include_witness=False))

    def weight(self) -> int:
        return len(self.serialize(False)) * 3 + len(self.serialize(True))

    def total_size(self) -> int:
        return len(self.serialize(True))

    def is_coinbase(self) -> bool:
        return len(self.inputs) == 1 and self.inputs[0].previous_output.is_null()


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ValueError("unexpected end of transaction data")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def varint(self) -> int:
        first = self.take(1)[0]
        fmt = {0xFD: "<H", 0xFE: "<I", 0xFF: "<Q"}.get(first)
        return first if fmt is None else self.unpack(fmt)

    def var_bytes(self) -> bytes:
        return self.take(self.varint())


def deserialize_transaction(data: bytes) -> Transaction:
    """Parse a transaction from its wire form; raise ValueError if malformed."""
    reader = _Reader(bytes(data))
    version = reader.unpack("<i")
    segwit = reader.data[reader.pos:reader.pos + 2] == b"\x00\x01"
    if segwit:
        reader.take(2)
    inputs = []
    for _ in range(reader.varint()):
        txid = reader.take(32)
        vout = reader.unpack("<I")
        script_sig = Script(reader.var_bytes())
        inputs.append(TxIn(OutPoint(txid, vout), script_sig, reader.unpack("<I")))
    outputs = []
    for _ in range(reader.varint()):
        value = reader.unpack("<Q")
        outputs.append(TxOut(value, Script(reader.var_bytes())))
    if segwit:
        for txin in inputs:
            txin.witness = [reader.var_bytes() for _ in range(reader.varint())]
    lock_time = reader.unpack("<I")
    if reader.pos != len(reader.data):
        raise ValueError("trailing bytes after transaction")
    return Transaction(version, inputs, outputs, lock_time)


@dataclass(frozen=True)
class TransactionStatus:
    confirmed: bool
    block_height: Optional[int] = None
    block_hash: Optional[bytes] = None
    block_time: Optional[int] = None

    def to_dict(self) -> dict:
        result: dict = {"confirmed": self.confirmed}
        if self.block_height is not None:
            result["block_height"] = self.block_height
        if self.block_hash is not None:
            result["block_hash"] = hash_to_hex(self.block_hash)
        if self.block_time is not None:
            result["block_time"] = self.block_time
        return result


@dataclass(frozen=True)
class TxInput:
    txid: bytes
    vin: int


def status_from_blockid(blockid) -> TransactionStatus:
    """Status for a transaction confirmed in `blockid`, or unconfirmed if None."""
    if blockid is None:
        return TransactionStatus(confirmed=False)
    return TransactionStatus(True, blockid.height, blockid.hash, blockid.time)


def is_coinbase(txin: TxIn) -> bool:
    return txin.previous_output.is_null()


def has_prevout(txin: TxIn) -> bool:
    return not txin.previous_output.is_null()


def is_spendable(txout: TxOut) -> bool:
    return not txout.script_pubkey.is_provably_unspendable()


def extract_tx_prevouts(tx: Transaction, txos: Mapping[OutPoint, TxOut],
                        allow_missing: bool) -> dict:
    """Map input index to the spent output, for inputs that have a prevout."""
    prevouts = {}
    for index, txin in enumerate(tx.inputs):
        if not has_prevout(txin):
            continue
        txout = txos.get(txin.previous_output)
        if txout is None:
            if not allow_missing:
                raise LookupError(f"missing outpoint {txin.previous_output!r}")
            continue
        prevouts[index] = txout
    return prevouts


def serialize_outpoint(outpoint: OutPoint) -> dict:
    return {"txid": hash_to_hex(outpoint.txid), "vout": outpoint.vout}