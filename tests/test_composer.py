"""
Tests for `ico_client/sale/composer.py` and the instruction layouts it emits.
"""

from __future__ import annotations

import struct

import pytest
from solders.keypair import Keypair

from ico_client.core.instruction_builder import (
    BUY_TOKENS_DISCRIMINATOR,
    CREATE_ICO_ATA_DISCRIMINATOR,
    DEPOSIT_ICO_DISCRIMINATOR,
    instruction_discriminator,
)
from ico_client.core.pubkeys import IcoAddresses, SolanaProgramAddresses
from ico_client.sale.base import PurchaseIntent, ValidatedPurchase
from ico_client.sale.composer import TransactionComposer


def _validated(amount: int, admin, buyer) -> ValidatedPurchase:
    intent = PurchaseIntent(requested_amount=amount, signer=buyer, current_user_holding=0)
    return ValidatedPurchase(intent=intent, sale_admin=admin, cost_lamports=amount * 1_000_000,
                             fee_reserve_lamports=5000)


def test_discriminators_follow_anchor_convention() -> None:
    import hashlib

    assert BUY_TOKENS_DISCRIMINATOR == hashlib.sha256(b"global:buy_tokens").digest()[:8]
    assert instruction_discriminator("create_ico_ata") == CREATE_ICO_ATA_DISCRIMINATOR
    assert len({BUY_TOKENS_DISCRIMINATOR, CREATE_ICO_ATA_DISCRIMINATOR, DEPOSIT_ICO_DISCRIMINATOR}) == 3


def test_purchase_without_token_account_prepends_create(addresses: IcoAddresses) -> None:
    buyer, admin = Keypair().pubkey(), Keypair().pubkey()
    derived = addresses.for_purchase(buyer, admin)

    instructions = TransactionComposer.build_purchase(_validated(10, admin, buyer), derived, False)

    assert len(instructions) == 2
    create, buy = instructions
    assert create.program_id == SolanaProgramAddresses.ASSOCIATED_TOKEN_ACCOUNT_PROGRAM_ID
    assert [m.pubkey for m in create.accounts][:4] == [buyer, derived.signer_token_account, buyer, derived.mint]
    assert buy.program_id == derived.program_id


def test_purchase_with_token_account_is_single_instruction(addresses: IcoAddresses) -> None:
    buyer, admin = Keypair().pubkey(), Keypair().pubkey()
    derived = addresses.for_purchase(buyer, admin)

    instructions = TransactionComposer.build_purchase(_validated(10, admin, buyer), derived, True)

    assert len(instructions) == 1
    assert bytes(instructions[0].data)[:8] == BUY_TOKENS_DISCRIMINATOR


def test_buy_instruction_layout(addresses: IcoAddresses) -> None:
    """Data is discriminator + u8 bump + u64 LE amount; admin account is writable."""

    buyer, admin = Keypair().pubkey(), Keypair().pubkey()
    derived = addresses.for_purchase(buyer, admin)

    (buy,) = TransactionComposer.build_purchase(_validated(42, admin, buyer), derived, True)

    data = bytes(buy.data)
    assert data == BUY_TOKENS_DISCRIMINATOR + bytes([derived.sale_vault_bump]) + struct.pack("<Q", 42)
    keys = [m.pubkey for m in buy.accounts]
    assert keys[:6] == [derived.sale_vault, derived.sale_record, derived.mint,
                        derived.signer_token_account, buyer, admin]
    assert buy.accounts[4].is_signer
    assert buy.accounts[5].is_writable and not buy.accounts[5].is_signer


def test_purchase_refuses_mismatched_admin(addresses: IcoAddresses) -> None:
    buyer = Keypair().pubkey()
    derived = addresses.for_purchase(buyer, Keypair().pubkey())

    with pytest.raises(ValueError):
        TransactionComposer.build_purchase(_validated(1, Keypair().pubkey(), buyer), derived, True)


def test_sale_initialization_is_single_instruction(addresses: IcoAddresses) -> None:
    admin = Keypair().pubkey()
    derived = addresses.for_funding(admin)

    (ix,) = TransactionComposer.build_sale_initialization(1000, derived)

    assert bytes(ix.data) == CREATE_ICO_ATA_DISCRIMINATOR + struct.pack("<Q", 1000)
    assert len(ix.accounts) == 8
    assert ix.accounts[4].pubkey == admin and ix.accounts[4].is_signer
    assert ix.accounts[7].pubkey == SolanaProgramAddresses.RENT_SYSVAR_PUBKEY


def test_deposit_is_single_instruction(addresses: IcoAddresses) -> None:
    admin = Keypair().pubkey()
    derived = addresses.for_funding(admin)

    (ix,) = TransactionComposer.build_deposit(250, derived)

    assert bytes(ix.data) == DEPOSIT_ICO_DISCRIMINATOR + struct.pack("<Q", 250)
    assert [m.pubkey for m in ix.accounts][:5] == [derived.sale_vault, derived.sale_record, derived.mint,
                                                   derived.signer_token_account, admin]
