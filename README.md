# chainrest

`chainrest` holds the pieces a Bitcoin block-explorer REST API is built
from. It classifies and renders scripts, parses addresses, reads and writes
transactions and block headers, tracks the best chain of headers, computes
fees, and builds the JSON shapes that an explorer returns for blocks,
transactions, outputs and spends. It needs nothing outside the standard library.

## Installation

```
pip install .
```

## Modules

- `chainrest.script`
  - `Network` has the networks `BITCOIN`, `TESTNET`, `REGTEST` and `SIGNET`.
  - `Script` classifies a script with `is_p2pkh()`, `is_p2wsh()`, `is_p2tr()` and the like. `script_type()` gives names such as `p2pkh`, `v0_p2wpkh`, `v1_p2tr`, `op_return`, `provably_unspendable` and `unknown`. `to_asm()` renders the script as ASM, and `to_address_str(network)` gives the address it pays to.
  - `parse_address(text)` reads base58 and bech32/bech32m addresses and raises `ValueError` when the text is invalid.
  - `compute_script_hash(script)` is the SHA-256 of the script.
  - `get_innerscripts(txin, prevout)` finds the redeemScript and witnessScript of a spend.
  - `sha256d`, `hash_to_hex` and `hex_to_hash` are hash helpers. `hash_to_hex` and `hex_to_hash` convert between the internal byte order and the reversed hex form.
- `chainrest.transaction`
  - `OutPoint`, `TxIn`, `TxOut` and `Transaction` model a transaction. `Transaction` provides `serialize()`, `txid()`, `weight()`, `total_size()` and `is_coinbase()`.
  - `deserialize_transaction(data)` parses the legacy and segwit wire forms.
  - `TransactionStatus` holds a confirmation status, and `status_from_blockid(blockid)` builds one.
  - `extract_tx_prevouts(tx, txos, allow_missing)` maps input indexes to the outputs those inputs spend.
- `chainrest.fees`
  - `get_tx_fee(tx, prevouts, network)` returns the fee. A coinbase transaction pays 0. The function raises `ValueError` when the outputs exceed the inputs.
  - `make_fee_info` returns a `TxFeeInfo` with the fee, the vsize and the fee rate.
  - `make_fee_histogram(entries)` groups transactions into `(fee_rate, vsize)` bins of more than 50,000 vbytes each, starting from the highest fee rate.
- `chainrest.block`
  - `BlockHeader` and `deserialize_header(data)` handle 80-byte headers. `BlockHeader` provides `block_hash()` and `difficulty()`.
  - `HeaderList` tracks the best chain. `order()` assigns heights to new headers, and `apply()` replaces headers from the first new height onward, which handles reorganisations. Look headers up with `header_by_height()` and `header_by_blockhash()`. `get_mtp(height)` returns the median time past.
  - `build_header_list(headers_map, tip_hash)` builds the chain that ends at the given tip and skips orphaned headers.
  - `BlockStatus`, `block_confirmed`, `block_orphaned`, `BlockMeta` and `parse_getblock(val)` describe block status and block metadata.
- `chainrest.values`
  - `RestConfig` holds the server settings.
  - `BlockValue`, `TransactionValue`, `TxInValue`, `TxOutValue`, `UtxoValue` and `SpendingValue` are the response shapes. Each has a `to_dict()` that returns JSON-ready data.
  - Build them with `make_block_value`, `make_transaction_value`, `make_txin_value`, `make_txout_value`, `make_utxo_value` and `make_spending_value`.
  - `ttl_by_depth(height, query)` returns the cache lifetime. A block buried at least 10 deep gets a long TTL, and everything else gets a short one.
  - `prepare_txs(txs, query, config)` builds transaction views for `(tx, blockid)` pairs. It fetches all their prevouts in one `query.lookup_txos(...)` call.
- `chainrest.util`
  - `full_hash(value)` returns the first 32 bytes of `value`.
  - `spawn_thread(name, func)` starts a named thread. Its `join()` returns the function's result or re-raises the function's error.
  - `create_socket((host, port))` returns a bound TCP socket, IPv4 or IPv6.
- `chainrest.signals`
  - `Waiter` catches SIGINT, SIGTERM and SIGUSR1. Create it on the main thread.
  - As a context manager, `Waiter` restores the previous signal handlers when it exits.
  - `wait(duration, accept_sigusr)` returns when the timeout runs out. With `accept_sigusr` set, it also returns early on SIGUSR1. Any other caught signal makes it raise `Interrupted`.

## Example

```python
from chainrest.script import Network, Script
from chainrest.transaction import OutPoint, Transaction, TxIn, TxOut
from chainrest.values import RestConfig, make_txout_value

script = Script(bytes.fromhex("0014" + "11" * 20))
print(script.script_type())                  # v0_p2wpkh
print(script.to_address_str(Network.BITCOIN))

coinbase = Transaction(
    version=2,
    inputs=[TxIn(OutPoint(bytes(32), 0xFFFFFFFF))],
    outputs=[TxOut(5_000_000_000, script)],
)
print(coinbase.is_coinbase(), coinbase.weight())
print(make_txout_value(coinbase.outputs[0], RestConfig(Network.BITCOIN)).to_dict())
```

## What this package does not do

The package has no HTTP server, no URL routing and no request handlers. It
also does not build merkle proofs. It has no index or storage of its own. You
supply the object passed as `query`. It must provide `chain().best_height()`
and `lookup_txos(outpoints)`, and it does the lookups that the value builders need.

## Tests

```
pip install .[test]
pytest
```