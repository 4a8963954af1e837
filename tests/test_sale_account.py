"""
Tests for `ico_client/core/sale_account.py`: account decoding and the reader.
"""

from __future__ import annotations

import asyncio
import struct

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ico_client.core.exceptions import QueryError
from ico_client.core.sale_account import (
    SALE_RECORD_DISCRIMINATOR,
    SaleAccountReader,
    SaleRecord,
    decode_sale_record,
    decode_token_account,
    split_whole_tokens,
)
from fakes import FakeRpcClient, encode_sale_record


def _record(admin: Pubkey, purchases=None) -> SaleRecord:
    return SaleRecord(address=Keypair().pubkey(), admin=admin, total_tokens=1000, tokens_sold=30,
                      token_price=1_000_000, user_purchases=purchases or {})


def test_sale_record_decodes_with_padding() -> None:
    """The program over-allocates the account; trailing zero bytes are ignored."""

    admin, buyer = Keypair().pubkey(), Keypair().pubkey()
    record = _record(admin, {buyer: 30})

    raw = encode_sale_record(record, padding=1000)
    decoded = decode_sale_record(record.address, raw)

    assert decoded == record
    assert decoded.purchased_by(buyer) == 30
    assert decoded.purchased_by(admin) == 0


def test_sale_record_wire_layout() -> None:
    admin = Keypair().pubkey()
    raw = encode_sale_record(_record(admin))

    assert raw[:8] == SALE_RECORD_DISCRIMINATOR
    assert raw[8:40] == bytes(admin)
    assert struct.unpack_from("<QQI", raw, 40) == (1000, 30, 0)
    assert struct.unpack_from("<Q", raw, 60) == (1_000_000,)


def test_wrong_discriminator_is_a_query_error() -> None:
    raw = bytearray(encode_sale_record(_record(Keypair().pubkey())))
    raw[0] ^= 0xFF

    with pytest.raises(QueryError):
        decode_sale_record(Keypair().pubkey(), bytes(raw))


def test_truncated_record_is_a_query_error() -> None:
    raw = encode_sale_record(_record(Keypair().pubkey()))

    with pytest.raises(QueryError):
        decode_sale_record(Keypair().pubkey(), raw[:20])


def test_token_account_decodes_leading_fields() -> None:
    mint, owner = Keypair().pubkey(), Keypair().pubkey()
    raw = bytes(mint) + bytes(owner) + struct.pack("<Q", 7 * 10 ** 9) + bytes(165 - 72)

    account = decode_token_account(Keypair().pubkey(), raw)

    assert account.mint == mint
    assert account.owner == owner
    assert split_whole_tokens(account.amount, 9) == (7, 0)


def test_reader_lists_and_skips_foreign_accounts(program_id: Pubkey) -> None:
    client = FakeRpcClient()
    good = _record(Keypair().pubkey())
    client.add_program_account(good.address, encode_sale_record(good, padding=64))
    client.add_program_account(Keypair().pubkey(), b"\x00" * 40)

    records = asyncio.run(SaleAccountReader(client, program_id).list_sale_records())

    assert records == [good]
    assert client.last_discriminator == SALE_RECORD_DISCRIMINATOR


def test_reader_distinguishes_missing_from_failed(program_id: Pubkey) -> None:
    client = FakeRpcClient()
    reader = SaleAccountReader(client, program_id)
    address = Keypair().pubkey()

    assert asyncio.run(reader.fetch_sale_record(address)) is None
    assert asyncio.run(reader.fetch_token_account(address)) is None

    client.fail = True
    with pytest.raises(QueryError):
        asyncio.run(reader.fetch_sale_record(address))
    with pytest.raises(QueryError):
        asyncio.run(reader.list_sale_records())
    with pytest.raises(QueryError):
        asyncio.run(reader.get_native_balance(address))


def test_reader_native_balance(program_id: Pubkey) -> None:
    client = FakeRpcClient()
    owner = Keypair().pubkey()
    client.balances[owner] = 123_456

    assert asyncio.run(SaleAccountReader(client, program_id).get_native_balance(owner)) == 123_456
