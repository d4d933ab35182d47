import pytest

from chainrest.block import (
    DEFAULT_BLOCKHASH,
    BlockHeader,
    BlockMeta,
    HeaderList,
    block_confirmed,
    block_orphaned,
    build_header_list,
    deserialize_header,
    parse_getblock,
)
from chainrest.script import hash_to_hex, hex_to_hash

GENESIS = BlockHeader(
    version=1,
    prev_blockhash=bytes(32),
    merkle_root=hex_to_hash("4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"),
    time=1231006505,
    bits=0x1D00FFFF,
    nonce=2083236893,
)


def make_chain(count, base_time=1_600_000_000, step=600, prev=DEFAULT_BLOCKHASH):
    headers = []
    for i in range(count):
        header = BlockHeader(1, prev, bytes([i % 256]) * 32, base_time + i * step, 0x207FFFFF, i)
        headers.append(header)
        prev = header.block_hash()
    return headers


def chain_list(headers):
    headers_list = HeaderList()
    headers_list.apply(headers_list.order(headers))
    return headers_list


def test_genesis_hash():
    assert hash_to_hex(GENESIS.block_hash()) == (
        "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
    )


def test_genesis_difficulty():
    assert GENESIS.difficulty() == 1.0


def test_header_round_trip():
    raw = GENESIS.serialize()
    assert len(raw) == 80
    assert deserialize_header(raw) == GENESIS


def test_deserialize_wrong_length():
    with pytest.raises(ValueError):
        deserialize_header(b"\0" * 79)


def test_empty_list():
    headers = HeaderList()
    assert len(headers) == 0
    assert headers.tip() == DEFAULT_BLOCKHASH
    assert headers.header_by_height(0) is None


def test_build_header_list_ignores_orphans():
    chain = make_chain(5)
    orphan = make_chain(1, base_time=1_700_000_000, prev=b"\x07" * 32)[0]
    headers_map = {h.block_hash(): h for h in chain + [orphan]}
    headers = build_header_list(headers_map, chain[-1].block_hash())
    assert len(headers) == 5
    assert headers.tip() == chain[-1].block_hash()
    assert [entry.height for entry in headers] == list(range(5))
    assert headers.header_by_blockhash(orphan.block_hash()) is None
    entry = headers.header_by_blockhash(chain[2].block_hash())
    assert entry.height == 2
    assert entry.header == chain[2]


def test_build_header_list_missing_parent():
    chain = make_chain(3)
    headers_map = {h.block_hash(): h for h in chain[1:]}
    with pytest.raises(LookupError):
        build_header_list(headers_map, chain[-1].block_hash())


def test_order_rejects_broken_chain():
    chain = make_chain(3)
    with pytest.raises(ValueError):
        HeaderList().order([chain[0], chain[2]])


def test_order_rejects_unknown_parent():
    chain = make_chain(3)
    with pytest.raises(LookupError):
        HeaderList().order([chain[1]])


def test_order_extends_existing_chain():
    chain = make_chain(6)
    headers = chain_list(chain[:3])
    entries = headers.order(chain[3:])
    assert [e.height for e in entries] == [3, 4, 5]
    headers.apply(entries)
    assert len(headers) == 6
    assert headers.tip() == chain[-1].block_hash()


def test_apply_reorg_replaces_tail():
    chain = make_chain(5)
    headers = chain_list(chain)
    alt = BlockHeader(1, chain[2].block_hash(), b"\xaa" * 32, chain[3].time, 0x207FFFFF, 999)
    headers.apply(headers.order([alt]))
    assert len(headers) == 4
    assert headers.tip() == alt.block_hash()
    assert headers.header_by_height(3).hash == alt.block_hash()
    assert headers.header_by_blockhash(chain[3].block_hash()) is None
    assert headers.header_by_blockhash(chain[4].block_hash()) is None


def test_apply_rejects_disconnected():
    chain = make_chain(5)
    headers = chain_list(chain[:2])
    foreign = chain_list(chain).order([])
    assert foreign == []
    entries = chain_list(chain)
    gap = [e for e in entries if e.height == 4]
    with pytest.raises(ValueError):
        headers.apply(gap)


def test_equals():
    chain = make_chain(4)
    assert chain_list(chain).equals(chain_list(chain))
    assert not chain_list(chain).equals(chain_list(chain[:3]))


def test_block_id_from_entry():
    chain = make_chain(3)
    entry = chain_list(chain).header_by_height(1)
    block_id = entry.block_id()
    assert block_id.height == 1
    assert block_id.hash == chain[1].block_hash()
    assert block_id.time == chain[1].time


def test_mtp_genesis_and_beyond_tip():
    chain = make_chain(3)
    headers = chain_list(chain)
    assert headers.get_mtp(0) == chain[0].time
    assert headers.get_mtp(3) == 0


def test_mtp_is_median_of_window():
    chain = make_chain(20)
    headers = chain_list(chain)
    for height in range(10, 20):
        assert headers.get_mtp(height) == chain[height - 5].time
    assert headers.get_mtp(4) == chain[2].time


def test_mtp_empty_list():
    with pytest.raises(LookupError):
        HeaderList().get_mtp(0)


def test_block_status():
    nxt = b"\x01" * 32
    assert block_confirmed(7, nxt).to_dict() == {
        "in_best_chain": True, "height": 7, "next_best": hash_to_hex(nxt),
    }
    assert block_orphaned().to_dict() == {
        "in_best_chain": False, "height": None, "next_best": None,
    }


def test_parse_getblock():
    meta = parse_getblock({"nTx": 2, "size": 500.0, "weight": 1800, "hash": "x"})
    assert meta == BlockMeta(tx_count=2, size=500, weight=1800)


def test_parse_getblock_missing():
    with pytest.raises(ValueError, match="missing nTx"):
        parse_getblock({"size": 1, "weight": 1})


def test_parse_getblock_not_number():
    with pytest.raises(ValueError, match="weight not a number"):
        parse_getblock({"nTx": 1, "size": 1, "weight": "heavy"})