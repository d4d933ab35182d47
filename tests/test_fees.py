import pytest

from chainrest.fees import TxFeeInfo, get_tx_fee, make_fee_histogram, make_fee_info
from chainrest.script import Network, Script
from chainrest.transaction import OutPoint, Transaction, TxIn, TxOut

PREV = OutPoint(b"\x01" * 32, 0)


def spend(out_value):
    return Transaction(2, [TxIn(PREV, Script(b"\x01\xaa"))],
                       [TxOut(out_value, Script(b"\x51"))])


def test_fee_is_inputs_minus_outputs():
    tx = spend(9000)
    assert get_tx_fee(tx, {0: TxOut(10000, Script(b"\x51"))}, Network.REGTEST) == 1000


def test_coinbase_fee_is_zero():
    tx = Transaction(1, [TxIn(OutPoint(b"\0" * 32, 0xFFFFFFFF))], [TxOut(50, Script())])
    assert get_tx_fee(tx, {}, Network.REGTEST) == 0


def test_negative_fee_rejected():
    with pytest.raises(ValueError):
        get_tx_fee(spend(20000), {0: TxOut(10000, Script())}, Network.REGTEST)


def test_fee_info():
    tx = spend(9000)
    info = make_fee_info(tx, {0: TxOut(10000, Script())}, Network.REGTEST)
    assert info.fee == 1000
    assert info.vsize * 4 >= tx.weight() > (info.vsize - 1) * 4
    assert info.fee_per_vbyte == pytest.approx(1000 / (tx.weight() / 4))


def test_histogram_worked_example():
    entries = [TxFeeInfo(0, 30000, r) for r in (1.0, 10.0, 5.0, 10.0)]
    assert make_fee_histogram(entries) == [(10.0, 60000), (1.0, 60000)]


def test_histogram_invariants():
    entries = [TxFeeInfo(0, 7000 + i * 13, float(i % 17)) for i in range(60)]
    hist = make_fee_histogram(entries)
    assert sum(size for _, size in hist) == sum(e.vsize for e in entries)
    rates = [rate for rate, _ in hist]
    assert rates == sorted(rates, reverse=True)
    assert make_fee_histogram([]) == []