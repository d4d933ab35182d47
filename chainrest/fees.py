"""Transaction fee computation and mempool fee histograms."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping

VSIZE_BIN_WIDTH = 50_000  # in vbytes


@dataclass(frozen=True)
class TxFeeInfo:
    fee: int  # satoshis
    vsize: int  # virtual bytes, weight / 4 rounded up
    fee_per_vbyte: float


def get_tx_fee(tx, prevouts: Mapping, network=None) -> int:
    """Fee paid by `tx` given its spent outputs; coinbase pays none."""
    if tx.is_coinbase():
        return 0
    total_in = sum(prevout.value for prevout in prevouts.values())
    total_out = sum(txout.value for txout in tx.outputs)
    if total_in < total_out:
        raise ValueError("transaction outputs exceed its inputs")
    return total_in - total_out


def make_fee_info(tx, prevouts: Mapping, network=None) -> TxFeeInfo:
    fee = get_tx_fee(tx, prevouts, network)
    vsize_float = tx.weight() / 4
    return TxFeeInfo(fee, math.ceil(vsize_float), fee / vsize_float)


def make_fee_histogram(entries: Iterable[TxFeeInfo]) -> list:
    """Bucket (fee rate, vsize) pairs from highest fee rate down."""
    histogram = []
    bin_size = 0
    last_fee_rate = 0.0
    for entry in sorted(entries, key=lambda e: e.fee_per_vbyte, reverse=True):
        if bin_size > VSIZE_BIN_WIDTH and last_fee_rate != entry.fee_per_vbyte:
            histogram.append((last_fee_rate, bin_size))
            bin_size = 0
        last_fee_rate = entry.fee_per_vbyte
        bin_size += entry.vsize
    if bin_size > 0:
        histogram.append((last_fee_rate, bin_size))
    return histogram