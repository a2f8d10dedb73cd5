"""
Margined Deploy - Transaction Codec

Protobuf wire encoding for the handful of Cosmos SDK / CosmWasm messages
the deployer submits (SIGN_MODE_DIRECT).

Wire format:
  - Field key = (field_number << 3) | wire_type
  - Wire type 0 = varint (uint64, enum, bool)
  - Wire type 2 = length-delimited (string, bytes, embedded message)
  - Proto3 default values (0, "", b"") are omitted

Message layouts (field numbers):
  TxRaw         body_bytes=1 auth_info_bytes=2 signatures=3
  TxBody        messages=1 (Any) memo=2 timeout_height=3
  AuthInfo      signer_infos=1 fee=2
  SignerInfo    public_key=1 (Any) mode_info=2 sequence=3
  Fee           amount=1 (Coin) gas_limit=2 payer=3 granter=4
  SignDoc       body_bytes=1 auth_info_bytes=2 chain_id=3 account_number=4
"""

import gzip
import json
from typing import Iterable, List, Optional, Sequence

from .chain_types import Coin

SIGN_MODE_DIRECT = 1

PUBKEY_TYPE_URL = "/cosmos.crypto.secp256k1.PubKey"
MSG_STORE_CODE = "/cosmwasm.wasm.v1.MsgStoreCode"
MSG_INSTANTIATE = "/cosmwasm.wasm.v1.MsgInstantiateContract"
MSG_EXECUTE = "/cosmwasm.wasm.v1.MsgExecuteContract"
MSG_MIGRATE = "/cosmwasm.wasm.v1.MsgMigrateContract"
MSG_UPDATE_ADMIN = "/cosmwasm.wasm.v1.MsgUpdateAdmin"
MSG_SEND = "/cosmos.bank.v1beta1.MsgSend"

GZIP_MAGIC = b"\x1f\x8b"


# ═══════════════════════════════════════════════════════════════════════════════
# WIRE PRIMITIVES
# ═══════════════════════════════════════════════════════════════════════════════

def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as a base-128 varint."""
    if value < 0:
        raise ValueError(f"varint must be non-negative, got {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key(field_number: int, wire_type: int) -> bytes:
    return encode_varint((field_number << 3) | wire_type)


def uint_field(field_number: int, value: int) -> bytes:
    if not value:
        return b""
    return _key(field_number, 0) + encode_varint(value)


def bytes_field(field_number: int, value: bytes) -> bytes:
    if not value:
        return b""
    return _key(field_number, 2) + encode_varint(len(value)) + value


def string_field(field_number: int, value: Optional[str]) -> bytes:
    if not value:
        return b""
    return bytes_field(field_number, value.encode())


def message_field(field_number: int, encoded: bytes) -> bytes:
    """Embedded message; always emitted, even when empty."""
    return _key(field_number, 2) + encode_varint(len(encoded)) + encoded


def repeated(field_number: int, items: Iterable[bytes]) -> bytes:
    return b"".join(message_field(field_number, item) for item in items)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMON TYPES
# ═══════════════════════════════════════════════════════════════════════════════

def encode_any(type_url: str, value: bytes) -> bytes:
    return string_field(1, type_url) + bytes_field(2, value)


def encode_coin(coin: Coin) -> bytes:
    return string_field(1, coin.denom) + string_field(2, str(coin.amount))


def encode_coins(field_number: int, coins: Sequence[Coin]) -> bytes:
    return repeated(field_number, (encode_coin(c) for c in coins))


def encode_json(msg) -> bytes:
    """Compact JSON bytes for contract messages (key order preserved)."""
    return json.dumps(msg, separators=(",", ":")).encode()


def compress_wasm(wasm: bytes) -> bytes:
    """Gzip wasm bytecode unless it is already gzipped."""
    if wasm.startswith(GZIP_MAGIC):
        return wasm
    return gzip.compress(wasm)


# ═══════════════════════════════════════════════════════════════════════════════
# WASM / BANK MESSAGES
# ═══════════════════════════════════════════════════════════════════════════════

def msg_store_code(sender: str, wasm: bytes) -> bytes:
    body = string_field(1, sender) + bytes_field(2, compress_wasm(wasm))
    return encode_any(MSG_STORE_CODE, body)


def msg_instantiate(sender: str, admin: Optional[str], code_id: int, label: str,
                    msg, funds: Sequence[Coin] = ()) -> bytes:
    body = (
        string_field(1, sender)
        + string_field(2, admin)
        + uint_field(3, code_id)
        + string_field(4, label)
        + bytes_field(5, encode_json(msg))
        + encode_coins(6, funds)
    )
    return encode_any(MSG_INSTANTIATE, body)


def msg_execute(sender: str, contract: str, msg, funds: Sequence[Coin] = ()) -> bytes:
    body = (
        string_field(1, sender)
        + string_field(2, contract)
        + bytes_field(3, encode_json(msg))
        + encode_coins(5, funds)
    )
    return encode_any(MSG_EXECUTE, body)


def msg_migrate(sender: str, contract: str, code_id: int, msg) -> bytes:
    body = (
        string_field(1, sender)
        + string_field(2, contract)
        + uint_field(3, code_id)
        + bytes_field(4, encode_json(msg))
    )
    return encode_any(MSG_MIGRATE, body)


def msg_update_admin(sender: str, new_admin: str, contract: str) -> bytes:
    body = string_field(1, sender) + string_field(2, new_admin) + string_field(3, contract)
    return encode_any(MSG_UPDATE_ADMIN, body)


def msg_send(from_address: str, to_address: str, amount: Sequence[Coin]) -> bytes:
    body = string_field(1, from_address) + string_field(2, to_address) + encode_coins(3, amount)
    return encode_any(MSG_SEND, body)


# ═══════════════════════════════════════════════════════════════════════════════
# TRANSACTION ENVELOPE
# ═══════════════════════════════════════════════════════════════════════════════

def encode_tx_body(messages: List[bytes], memo: str = "") -> bytes:
    return repeated(1, messages) + string_field(2, memo)


def encode_fee(amount: Sequence[Coin], gas_limit: int) -> bytes:
    return encode_coins(1, amount) + uint_field(2, gas_limit)


def encode_auth_info(public_key: bytes, sequence: int,
                     fee_amount: Sequence[Coin], gas_limit: int) -> bytes:
    pubkey_any = encode_any(PUBKEY_TYPE_URL, bytes_field(1, public_key))
    mode_info = message_field(1, uint_field(1, SIGN_MODE_DIRECT))
    signer_info = (
        message_field(1, pubkey_any)
        + message_field(2, mode_info)
        + uint_field(3, sequence)
    )
    return message_field(1, signer_info) + message_field(2, encode_fee(fee_amount, gas_limit))


def encode_sign_doc(body_bytes: bytes, auth_info_bytes: bytes,
                    chain_id: str, account_number: int) -> bytes:
    return (
        bytes_field(1, body_bytes)
        + bytes_field(2, auth_info_bytes)
        + string_field(3, chain_id)
        + uint_field(4, account_number)
    )


def encode_tx_raw(body_bytes: bytes, auth_info_bytes: bytes, signatures: List[bytes]) -> bytes:
    # an empty signature still occupies its slot (simulation)
    sigs = b"".join(_key(3, 2) + encode_varint(len(s)) + s for s in signatures)
    return bytes_field(1, body_bytes) + bytes_field(2, auth_info_bytes) + sigs
