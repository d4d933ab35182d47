from types import SimpleNamespace

import pytest

from chainrest.script import Script, hash_to_hex, sha256d
from chainrest.transaction import (
    OutPoint, Transaction, TxIn, TxOut, deserialize_transaction, extract_tx_prevouts,
    has_prevout, is_coinbase, is_spendable, serialize_outpoint, status_from_blockid,
)

NULL = OutPoint(b"\0" * 32, 0xFFFFFFFF)
PREV = OutPoint(b"\x01" * 32, 3)


def make_tx(witness=None):
    return Transaction(
        version=2,
        inputs=[TxIn(PREV, Script(b"\x01\xaa"), 0xFFFFFFFE, witness or [])],
        outputs=[TxOut(5000, Script(b"\x00\x14" + b"\x02" * 20)), TxOut(0, Script(b"\x6a"))],
        lock_time=7,
    )


def test_null_outpoint():
    assert NULL.is_null()
    assert not PREV.is_null()
    coinbase_in = TxIn(NULL)
    assert is_coinbase(coinbase_in) and not has_prevout(coinbase_in)
    assert Transaction(1, [coinbase_in], []).is_coinbase()
    assert not make_tx().is_coinbase()


def test_legacy_roundtrip_and_sizes():
    tx = make_tx()
    raw = tx.serialize()
    assert deserialize_transaction(raw) == tx
    assert tx.txid() == sha256d(raw)
    assert tx.weight() == 4 * tx.total_size()
    assert raw[:4] == b"\x02\x00\x00\x00"


def test_segwit_roundtrip():
    tx = make_tx([b"\x30" * 71, b"\x02" * 33])
    raw = tx.serialize(True)
    assert raw[4:6] == b"\x00\x01"
    back = deserialize_transaction(raw)
    assert back == tx
    assert tx.txid() == sha256d(tx.serialize(False))
    assert tx.weight() < 4 * tx.total_size()


def test_deserialize_errors():
    raw = make_tx().serialize()
    with pytest.raises(ValueError):
        deserialize_transaction(raw[:-1])
    with pytest.raises(ValueError):
        deserialize_transaction(raw + b"\x00")


def test_spendable():
    assert is_spendable(TxOut(1, Script(b"\x51")))
    assert not is_spendable(TxOut(1, Script(b"\x6a")))


def test_extract_prevouts():
    tx = Transaction(1, [TxIn(NULL), TxIn(PREV)], [])
    out = TxOut(10, Script(b"\x51"))
    assert extract_tx_prevouts(tx, {PREV: out}, False) == {1: out}
    assert extract_tx_prevouts(tx, {}, True) == {}
    with pytest.raises(LookupError):
        extract_tx_prevouts(tx, {}, False)


def test_status_and_outpoint_dicts():
    assert status_from_blockid(None).to_dict() == {"confirmed": False}
    block = SimpleNamespace(height=102, hash=b"\x05" * 32, time=1234)
    assert status_from_blockid(block).to_dict() == {
        "confirmed": True, "block_height": 102,
        "block_hash": hash_to_hex(b"\x05" * 32), "block_time": 1234,
    }
    assert serialize_outpoint(PREV) == {"txid": "01" * 32, "vout": 3}