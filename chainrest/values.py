"""JSON-ready views of blocks, transactions, outputs and spends for the REST API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from chainrest.block import DEFAULT_BLOCKHASH
from chainrest.fees import get_tx_fee
from chainrest.script import Network, get_innerscripts, hash_to_hex
from chainrest.transaction import (
    TransactionStatus,
    extract_tx_prevouts,
    has_prevout,
    is_coinbase,
    status_from_blockid,
)

CHAIN_TXS_PER_PAGE = 25
MAX_MEMPOOL_TXS = 50
BLOCK_LIMIT = 10
ADDRESS_SEARCH_LIMIT = 10

TTL_LONG = 157_784_630  # static resources (5 years)
TTL_SHORT = 10  # volatile resources
TTL_MEMPOOL_RECENT = 5  # GET /mempool/recent
CONF_FINAL = 10  # reorgs deeper than this are considered unlikely

_U32_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class RestConfig:
    """Settings the REST server needs."""

    network_type: Network = Network.REGTEST
    address_search: bool = False
    cors: Optional[str] = None
    http_addr: tuple = ("127.0.0.1", 0)
    http_socket_file: Optional[str] = None


@dataclass(frozen=True)
class BlockValue:
    id: bytes
    height: int
    version: int
    timestamp: int
    tx_count: int
    size: int
    weight: int
    merkle_root: bytes
    previousblockhash: Optional[bytes]
    mediantime: int
    nonce: int
    bits: int
    difficulty: float

    def to_dict(self) -> dict:
        return {
            "id": hash_to_hex(self.id),
            "height": self.height,
            "version": self.version,
            "timestamp": self.timestamp,
            "tx_count": self.tx_count,
            "size": self.size,
            "weight": self.weight,
            "merkle_root": hash_to_hex(self.merkle_root),
            "previousblockhash": (
                None if self.previousblockhash is None else hash_to_hex(self.previousblockhash)
            ),
            "mediantime": self.mediantime,
            "nonce": self.nonce,
            "bits": self.bits,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class TxOutValue:
    scriptpubkey: bytes
    scriptpubkey_asm: str
    scriptpubkey_type: str
    scriptpubkey_address: Optional[str]
    value: int

    def to_dict(self) -> dict:
        result: dict = {
            "scriptpubkey": self.scriptpubkey.hex(),
            "scriptpubkey_asm": self.scriptpubkey_asm,
            "scriptpubkey_type": self.scriptpubkey_type,
        }
        if self.scriptpubkey_address is not None:
            result["scriptpubkey_address"] = self.scriptpubkey_address
        result["value"] = self.value
        return result


@dataclass(frozen=True)
class TxInValue:
    txid: bytes
    vout: int
    prevout: Optional[TxOutValue]
    scriptsig: bytes
    scriptsig_asm: str
    witness: Optional[list]
    is_coinbase: bool
    sequence: int
    inner_redeemscript_asm: Optional[str] = None
    inner_witnessscript_asm: Optional[str] = None

    def to_dict(self) -> dict:
        result: dict = {
            "txid": hash_to_hex(self.txid),
            "vout": self.vout,
            "prevout": None if self.prevout is None else self.prevout.to_dict(),
            "scriptsig": self.scriptsig.hex(),
            "scriptsig_asm": self.scriptsig_asm,
        }
        if self.witness is not None:
            result["witness"] = list(self.witness)
        result["is_coinbase"] = self.is_coinbase
        result["sequence"] = self.sequence
        if self.inner_redeemscript_asm is not None:
            result["inner_redeemscript_asm"] = self.inner_redeemscript_asm
        if self.inner_witnessscript_asm is not None:
            result["inner_witnessscript_asm"] = self.inner_witnessscript_asm
        return result


@dataclass(frozen=True)
class TransactionValue:
    txid: bytes
    version: int
    locktime: int
    vin: list = field(default_factory=list)
    vout: list = field(default_factory=list)
    size: int = 0
    weight: int = 0
    fee: int = 0
    status: Optional[TransactionStatus] = None

    def to_dict(self) -> dict:
        result: dict = {
            "txid": hash_to_hex(self.txid),
            "version": self.version,
            "locktime": self.locktime,
            "vin": [txin.to_dict() for txin in self.vin],
            "vout": [txout.to_dict() for txout in self.vout],
            "size": self.size,
            "weight": self.weight,
            "fee": self.fee,
        }
        if self.status is not None:
            result["status"] = self.status.to_dict()
        return result


@dataclass(frozen=True)
class UtxoValue:
    txid: bytes
    vout: int
    status: TransactionStatus
    value: int

    def to_dict(self) -> dict:
        return {
            "txid": hash_to_hex(self.txid),
            "vout": self.vout,
            "status": self.status.to_dict(),
            "value": self.value,
        }


@dataclass(frozen=True)
class SpendingValue:
    spent: bool = False
    txid: Optional[bytes] = None
    vin: Optional[int] = None
    status: Optional[TransactionStatus] = None

    def to_dict(self) -> dict:
        result: dict = {"spent": self.spent}
        if self.txid is not None:
            result["txid"] = hash_to_hex(self.txid)
        if self.vin is not None:
            result["vin"] = self.vin
        if self.status is not None:
            result["status"] = self.status.to_dict()
        return result


def make_block_value(blockhm) -> BlockValue:
    """Build the block view from a header entry with its metadata."""
    entry = blockhm.header_entry
    header = entry.header
    prev = header.prev_blockhash
    return BlockValue(
        id=header.block_hash(),
        height=entry.height,
        version=header.version & _U32_MASK,
        timestamp=header.time,
        tx_count=blockhm.meta.tx_count,
        size=blockhm.meta.size,
        weight=blockhm.meta.weight,
        merkle_root=header.merkle_root,
        previousblockhash=None if prev == DEFAULT_BLOCKHASH else prev,
        mediantime=blockhm.mtp,
        nonce=header.nonce,
        bits=header.bits,
        difficulty=header.difficulty(),
    )


def make_txout_value(txout, config: RestConfig) -> TxOutValue:
    script = txout.script_pubkey
    return TxOutValue(
        scriptpubkey=bytes(script),
        scriptpubkey_asm=script.to_asm(),
        scriptpubkey_type=script.script_type(),
        scriptpubkey_address=script.to_address_str(config.network_type),
        value=txout.value,
    )


def make_txin_value(txin, prevout, config: RestConfig) -> TxInValue:
    witness = [bytes(item).hex() for item in txin.witness] if txin.witness else None
    inner = get_innerscripts(txin, prevout) if prevout is not None else None
    redeem = inner.redeem_script if inner is not None else None
    witness_script = inner.witness_script if inner is not None else None
    return TxInValue(
        txid=txin.previous_output.txid,
        vout=txin.previous_output.vout,
        prevout=None if prevout is None else make_txout_value(prevout, config),
        scriptsig=bytes(txin.script_sig),
        scriptsig_asm=txin.script_sig.to_asm(),
        witness=witness,
        is_coinbase=is_coinbase(txin),
        sequence=txin.sequence,
        inner_redeemscript_asm=None if redeem is None else redeem.to_asm(),
        inner_witnessscript_asm=None if witness_script is None else witness_script.to_asm(),
    )


def make_transaction_value(tx, blockid, txos: Mapping, config: RestConfig) -> TransactionValue:
    """Build the transaction view; `txos` supplies the outputs it spends."""
    prevouts = extract_tx_prevouts(tx, txos, True)
    return TransactionValue(
        txid=tx.txid(),
        version=tx.version & _U32_MASK,
        locktime=tx.lock_time,
        vin=[make_txin_value(txin, prevouts.get(index), config)
             for index, txin in enumerate(tx.inputs)],
        vout=[make_txout_value(txout, config) for txout in tx.outputs],
        size=tx.total_size(),
        weight=tx.weight(),
        fee=get_tx_fee(tx, prevouts, config.network_type),
        status=status_from_blockid(blockid),
    )


def make_utxo_value(utxo) -> UtxoValue:
    return UtxoValue(
        txid=utxo.txid,
        vout=utxo.vout,
        status=status_from_blockid(utxo.confirmed),
        value=utxo.value,
    )


def make_spending_value(spend) -> SpendingValue:
    """Spend info for an output; `spend` is None when the output is unspent."""
    if spend is None:
        return SpendingValue()
    return SpendingValue(
        spent=True,
        txid=spend.txid,
        vin=spend.vin,
        status=status_from_blockid(spend.confirmed),
    )


def ttl_by_depth(height: Optional[int], query: Any) -> int:
    """Cache lifetime: long for blocks buried deep enough, short otherwise."""
    if height is None:
        return TTL_SHORT
    if query.chain().best_height() - height >= CONF_FINAL:
        return TTL_LONG
    return TTL_SHORT


def prepare_txs(txs: Iterable, query: Any, config: RestConfig) -> list:
    """Build views for (transaction, blockid) pairs, fetching their prevouts at once."""
    txs = list(txs)
    outpoints = {
        txin.previous_output
        for tx, _ in txs
        for txin in tx.inputs
        if has_prevout(txin)
    }
    prevouts = query.lookup_txos(outpoints)
    return [make_transaction_value(tx, blockid, prevouts, config) for tx, blockid in txs]