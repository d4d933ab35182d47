"""Bitcoin scripts, addresses and script-hash helpers."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

_NAMED_OPCODES = {
    0x4C: "OP_PUSHDATA1", 0x4D: "OP_PUSHDATA2", 0x4E: "OP_PUSHDATA4",
    0x4F: "OP_PUSHNUM_NEG1", 0x50: "OP_RESERVED", 0x61: "OP_NOP", 0x62: "OP_VER",
    0x63: "OP_IF", 0x64: "OP_NOTIF", 0x65: "OP_VERIF", 0x66: "OP_VERNOTIF",
    0x67: "OP_ELSE", 0x68: "OP_ENDIF", 0x69: "OP_VERIFY", 0x6A: "OP_RETURN",
    0x6B: "OP_TOALTSTACK", 0x6C: "OP_FROMALTSTACK", 0x6D: "OP_2DROP", 0x6E: "OP_2DUP",
    0x6F: "OP_3DUP", 0x70: "OP_2OVER", 0x71: "OP_2ROT", 0x72: "OP_2SWAP",
    0x73: "OP_IFDUP", 0x74: "OP_DEPTH", 0x75: "OP_DROP", 0x76: "OP_DUP", 0x77: "OP_NIP",
    0x78: "OP_OVER", 0x79: "OP_PICK", 0x7A: "OP_ROLL", 0x7B: "OP_ROT", 0x7C: "OP_SWAP",
    0x7D: "OP_TUCK", 0x7E: "OP_CAT", 0x7F: "OP_SUBSTR", 0x80: "OP_LEFT", 0x81: "OP_RIGHT",
    0x82: "OP_SIZE", 0x83: "OP_INVERT", 0x84: "OP_AND", 0x85: "OP_OR", 0x86: "OP_XOR",
    0x87: "OP_EQUAL", 0x88: "OP_EQUALVERIFY", 0x89: "OP_RESERVED1", 0x8A: "OP_RESERVED2",
    0x8B: "OP_1ADD", 0x8C: "OP_1SUB", 0x8D: "OP_2MUL", 0x8E: "OP_2DIV", 0x8F: "OP_NEGATE",
    0x90: "OP_ABS", 0x91: "OP_NOT", 0x92: "OP_0NOTEQUAL", 0x93: "OP_ADD", 0x94: "OP_SUB",
    0x95: "OP_MUL", 0x96: "OP_DIV", 0x97: "OP_MOD", 0x98: "OP_LSHIFT", 0x99: "OP_RSHIFT",
    0x9A: "OP_BOOLAND", 0x9B: "OP_BOOLOR", 0x9C: "OP_NUMEQUAL", 0x9D: "OP_NUMEQUALVERIFY",
    0x9E: "OP_NUMNOTEQUAL", 0x9F: "OP_LESSTHAN", 0xA0: "OP_GREATERTHAN",
    0xA1: "OP_LESSTHANOREQUAL", 0xA2: "OP_GREATERTHANOREQUAL", 0xA3: "OP_MIN",
    0xA4: "OP_MAX", 0xA5: "OP_WITHIN", 0xA6: "OP_RIPEMD160", 0xA7: "OP_SHA1",
    0xA8: "OP_SHA256", 0xA9: "OP_HASH160", 0xAA: "OP_HASH256", 0xAB: "OP_CODESEPARATOR",
    0xAC: "OP_CHECKSIG", 0xAD: "OP_CHECKSIGVERIFY", 0xAE: "OP_CHECKMULTISIG",
    0xAF: "OP_CHECKMULTISIGVERIFY", 0xB0: "OP_NOP1", 0xB1: "OP_CLTV", 0xB2: "OP_CSV",
    0xB3: "OP_NOP4", 0xB4: "OP_NOP5", 0xB5: "OP_NOP6", 0xB6: "OP_NOP7", 0xB7: "OP_NOP8",
    0xB8: "OP_NOP9", 0xB9: "OP_NOP10", 0xBA: "OP_CHECKSIGADD", 0xFF: "OP_INVALIDOPCODE",
}

_RETURN_OPS = {0x50, 0x62, 0x6A, 0x89, 0x8A}
_ILLEGAL_OPS = {0x65, 0x66, 0x7E, 0x7F, 0x80, 0x81, 0x83, 0x84, 0x85, 0x86,
                0x8D, 0x8E, 0x95, 0x96, 0x97, 0x98, 0x99}


def _opcode_name(op: int) -> str:
    if op == OP_0:
        return "OP_0"
    if op <= 0x4B:
        return f"OP_PUSHBYTES_{op}"
    if OP_1 <= op <= OP_16:
        return f"OP_PUSHNUM_{op - OP_1 + 1}"
    if op in _NAMED_OPCODES:
        return _NAMED_OPCODES[op]
    return f"OP_RETURN_{op}"


class Network(Enum):
    """Bitcoin networks."""

    BITCOIN = "bitcoin"
    TESTNET = "testnet"
    REGTEST = "regtest"
    SIGNET = "signet"

    @property
    def bech32_hrp(self) -> str:
        return {"bitcoin": "bc", "regtest": "bcrt"}.get(self.value, "tb")

    @property
    def p2pkh_version(self) -> int:
        return 0x00 if self is Network.BITCOIN else 0x6F

    @property
    def p2sh_version(self) -> int:
        return 0x05 if self is Network.BITCOIN else 0xC4


def sha256d(data: bytes) -> bytes:
    """Double SHA-256."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash_to_hex(value: bytes) -> str:
    """Render a 32-byte hash in the reversed, human-facing hex order."""
    return bytes(reversed(value)).hex()


def hex_to_hash(text: str) -> bytes:
    """Parse a reversed-order hex hash into its internal byte order."""
    if len(text) != 64:
        raise ValueError("Invalid hash string")
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise ValueError("Invalid hash string") from None
    return bytes(reversed(raw))


@dataclass(frozen=True)
class Script:
    """A raw script."""

    data: bytes = b""

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    @property
    def hex(self) -> str:
        return self.data.hex()

    def _raw_instructions(self) -> Iterator[tuple[int, Optional[bytes]]]:
        data = self.data
        pos = 0
        while pos < len(data):
            op = data[pos]
            pos += 1
            if op > OP_PUSHDATA4:
                yield op, None
                continue
            if op <= 0x4B:
                length = op
            else:
                width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[op]
                if pos + width > len(data):
                    raise ValueError("unexpected end of script")
                length = int.from_bytes(data[pos:pos + width], "little")
                pos += width
            if pos + length > len(data):
                raise ValueError("push past end of script")
            yield op, data[pos:pos + length]
            pos += length

    def instructions(self) -> Iterator[Union[bytes, int]]:
        """Yield pushed data as bytes and other opcodes as ints."""
        for op, pushed in self._raw_instructions():
            yield op if pushed is None else pushed

    def to_asm(self) -> str:
        parts = []
        try:
            for op, pushed in self._raw_instructions():
                parts.append(_opcode_name(op))
                if pushed:
                    parts.append(pushed.hex())
        except ValueError:
            parts.append("<push past end>")
        return " ".join(parts)

    def is_empty(self) -> bool:
        return not self.data

    def is_op_return(self) -> bool:
        return self.data[:1] == bytes([OP_RETURN])

    def is_p2pk(self) -> bool:
        d = self.data
        return (len(d) == 35 and d[0] == 0x21 and d[-1] == OP_CHECKSIG) or (
            len(d) == 67 and d[0] == 0x41 and d[-1] == OP_CHECKSIG
        )

    def is_p2pkh(self) -> bool:
        d = self.data
        return (len(d) == 25 and d[0] == OP_DUP and d[1] == OP_HASH160 and d[2] == 0x14
                and d[23] == OP_EQUALVERIFY and d[24] == OP_CHECKSIG)

    def is_p2sh(self) -> bool:
        d = self.data
        return len(d) == 23 and d[0] == OP_HASH160 and d[1] == 0x14 and d[22] == OP_EQUAL

    def is_p2wpkh(self) -> bool:
        d = self.data
        return len(d) == 22 and d[0] == OP_0 and d[1] == 0x14

    def is_p2wsh(self) -> bool:
        d = self.data
        return len(d) == 34 and d[0] == OP_0 and d[1] == 0x20

    def is_p2tr(self) -> bool:
        d = self.data
        return len(d) == 34 and d[0] == OP_1 and d[1] == 0x20

    def is_provably_unspendable(self) -> bool:
        if not self.data:
            return False
        first = self.data[0]
        return first in _RETURN_OPS or first in _ILLEGAL_OPS or first >= 0xBA

    def script_type(self) -> str:
        """Classify the script as the REST output type name."""
        checks = (
            (self.is_empty, "empty"), (self.is_op_return, "op_return"),
            (self.is_p2pk, "p2pk"), (self.is_p2pkh, "p2pkh"), (self.is_p2sh, "p2sh"),
            (self.is_p2wpkh, "v0_p2wpkh"), (self.is_p2wsh, "v0_p2wsh"),
            (self.is_p2tr, "v1_p2tr"),
            (self.is_provably_unspendable, "provably_unspendable"),
        )
        return next((name for check, name in checks if check()), "unknown")

    def _witness_program(self) -> Optional[tuple[int, bytes]]:
        d = self.data
        if len(d) < 4 or len(d) > 42:
            return None
        if d[0] != OP_0 and not OP_1 <= d[0] <= OP_16:
            return None
        if d[1] != len(d) - 2 or not 2 <= d[1] <= 40:
            return None
        version = 0 if d[0] == OP_0 else d[0] - OP_1 + 1
        if version == 0 and d[1] not in (20, 32):
            return None
        return version, d[2:]

    def to_address_str(self, network: Network) -> Optional[str]:
        """Return the address this script pays to, if it has one."""
        if self.is_p2pkh():
            return _base58check_encode(bytes([network.p2pkh_version]) + self.data[3:23])
        if self.is_p2sh():
            return _base58check_encode(bytes([network.p2sh_version]) + self.data[2:22])
        program = self._witness_program()
        if program is None:
            return None
        return _encode_segwit(network.bech32_hrp, *program)


@dataclass(frozen=True)
class InnerScripts:
    redeem_script: Optional[Script] = None
    witness_script: Optional[Script] = None


@dataclass(frozen=True)
class Address:
    """A parsed address and the networks it is valid for."""

    text: str
    script: Script
    networks: frozenset

    def __str__(self) -> str:
        return self.text

    def is_valid_for_network(self, network: Network) -> bool:
        return network in self.networks

    def script_pubkey(self) -> Script:
        return self.script


def compute_script_hash(script: Union[Script, bytes]) -> bytes:
    """SHA-256 of the script bytes, as used for script-hash indexing."""
    return hashlib.sha256(bytes(script)).digest()


def _base58check_encode(payload: bytes) -> str:
    data = payload + sha256d(payload)[:4]
    number = int.from_bytes(data, "big")
    chars = []
    while number:
        number, rem = divmod(number, 58)
        chars.append(_BASE58_ALPHABET[rem])
    leading = len(data) - len(data.lstrip(b"\0"))
    return "1" * leading + "".join(reversed(chars))


def _base58check_decode(text: str) -> bytes:
    number = 0
    for char in text:
        index = _BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"invalid base58 character {char!r}")
        number = number * 58 + index
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    leading = len(text) - len(text.lstrip("1"))
    data = b"\0" * leading + body
    if len(data) < 4 or sha256d(data[:-4])[:4] != data[-4:]:
        raise ValueError("invalid base58 checksum")
    return data[:-4]


def _bech32_polymod(values) -> int:
    generators = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for bit, gen in enumerate(generators):
            if (top >> bit) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data, from_bits: int, to_bits: int, pad: bool) -> list:
    acc = bits = 0
    out = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        raise ValueError("invalid bech32 padding")
    return out


def _encode_segwit(hrp: str, version: int, program: bytes) -> str:
    data = [version] + _convert_bits(program, 8, 5, True)
    const = _BECH32_CONST if version == 0 else _BECH32M_CONST
    polymod = _bech32_polymod(_hrp_expand(hrp) + data + [0] * 6) ^ const
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_BECH32_CHARSET[d] for d in data + checksum)


def _decode_segwit(text: str) -> tuple[str, int, bytes]:
    if text.lower() != text and text.upper() != text:
        raise ValueError("mixed-case bech32 address")
    text = text.lower()
    sep = text.rfind("1")
    if sep < 1 or sep + 7 > len(text) or len(text) > 90:
        raise ValueError("invalid bech32 address")
    hrp = text[:sep]
    try:
        data = [_BECH32_CHARSET.index(c) for c in text[sep + 1:]]
    except ValueError:
        raise ValueError("invalid bech32 character") from None
    const = _bech32_polymod(_hrp_expand(hrp) + data)
    if const not in (_BECH32_CONST, _BECH32M_CONST):
        raise ValueError("invalid bech32 checksum")
    if not data[:-6]:
        raise ValueError("empty witness program")
    version = data[0]
    program = bytes(_convert_bits(data[1:-6], 5, 8, False))
    if version > 16 or not 2 <= len(program) <= 40:
        raise ValueError("invalid witness program")
    if version == 0 and len(program) not in (20, 32):
        raise ValueError("invalid witness v0 program length")
    if (version == 0) != (const == _BECH32_CONST):
        raise ValueError("invalid checksum variant for witness version")
    return hrp, version, program


def parse_address(text: str) -> Address:
    """Parse a base58 or bech32 address; raise ValueError if invalid."""
    lowered = text.lower()
    for hrp in ("bcrt", "bc", "tb"):
        if lowered.startswith(hrp + "1"):
            hrp_found, version, program = _decode_segwit(text)
            op = OP_0 if version == 0 else OP_1 + version - 1
            script = Script(bytes([op, len(program)]) + program)
            networks = frozenset(n for n in Network if n.bech32_hrp == hrp_found)
            return Address(text, script, networks)
    payload = _base58check_decode(text)
    if len(payload) != 21:
        raise ValueError("invalid base58 payload length")
    version, body = payload[0], payload[1:]
    testnets = frozenset({Network.TESTNET, Network.REGTEST, Network.SIGNET})
    if version in (0x00, 0x6F):
        script = Script(bytes([OP_DUP, OP_HASH160, 20]) + body
                        + bytes([OP_EQUALVERIFY, OP_CHECKSIG]))
    elif version in (0x05, 0xC4):
        script = Script(bytes([OP_HASH160, 20]) + body + bytes([OP_EQUAL]))
    else:
        raise ValueError("unknown address version byte")
    networks = frozenset({Network.BITCOIN}) if version in (0x00, 0x05) else testnets
    return Address(text, script, networks)


def get_innerscripts(txin, prevout) -> InnerScripts:
    """Return the redeemScript (p2sh) and/or witnessScript (p2wsh) of a spend."""
    redeem_script = None
    if prevout.script_pubkey.is_p2sh():
        last = None
        try:
            for last in txin.script_sig.instructions():
                pass
        except ValueError:
            last = None
        if isinstance(last, bytes):
            redeem_script = Script(last)

    witness_script = None
    if prevout.script_pubkey.is_p2wsh() or (
        redeem_script is not None and redeem_script.is_p2wsh()
    ):
        if txin.witness:
            witness_script = Script(bytes(txin.witness[-1]))
    return InnerScripts(redeem_script, witness_script)


__all__ = [
    "Network", "Script", "InnerScripts", "Address", "sha256d", "hash_to_hex",
    "hex_to_hash", "compute_script_hash", "parse_address", "get_innerscripts",
]

_ = struct  # struct kept available for callers packing script numbers