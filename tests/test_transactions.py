"""
Tests for `ico_client/core/transactions.py`.

A scripted client stands in for the RPC node; transactions are really
compiled and signed, only the network is faked.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from ico_client.core.exceptions import SubmissionError
from ico_client.core.instruction_builder import InstructionBuilder
from ico_client.core.pubkeys import IcoAddresses
from ico_client.core.transactions import TransactionSubmitter, build_and_send_transaction
from ico_client.core.wallet import Wallet


class ScriptedClient:
    def __init__(self, blockhash=Hash.default(), send_error=None, status=None):
        self.blockhash = blockhash
        self.send_error = send_error
        self.status = status
        self.sent = []
        self.blockhash_calls = 0

    async def get_latest_blockhash(self):
        self.blockhash_calls += 1
        return self.blockhash

    async def send_transaction(self, tx, opts=None):
        self.sent.append(tx)
        if self.send_error is not None:
            raise self.send_error
        return tx.signatures[0]

    async def wait_for_status(self, signature, accepted, timeout_seconds=60, poll_interval=1.0):
        return self.status


def _confirmed(err=None):
    return SimpleNamespace(err=err, confirmation_status=TransactionConfirmationStatus.Confirmed)


def _instructions(addresses: IcoAddresses, wallet: Wallet):
    derived = addresses.for_funding(wallet.pubkey)
    return [InstructionBuilder.build_create_ico_ata_instruction(derived, 1000)]


def test_confirmed_transaction_succeeds(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    client = ScriptedClient(status=_confirmed())

    result = asyncio.run(build_and_send_transaction(client, wallet.keypair, _instructions(addresses, wallet)))

    assert result.success
    assert len(client.sent) == 1
    assert result.signature == str(client.sent[0].signatures[0])
    assert client.sent[0].message.account_keys[0] == wallet.pubkey


def test_send_error_is_not_retried(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    client = ScriptedClient(send_error=RPCException("Blockhash not found"))

    result = asyncio.run(build_and_send_transaction(client, wallet.keypair, _instructions(addresses, wallet)))

    assert not result.success
    assert result.error_type == "SendError"
    assert len(client.sent) == 1


def test_on_chain_error_is_reported(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    client = ScriptedClient(status=_confirmed(err="InstructionError(0, Custom(6001))"))

    result = asyncio.run(build_and_send_transaction(client, wallet.keypair, _instructions(addresses, wallet)))

    assert result.error_type == "TxError"
    assert result.signature is not None


def test_missing_confirmation_is_a_timeout(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    client = ScriptedClient(status=None)

    result = asyncio.run(build_and_send_transaction(client, wallet.keypair, _instructions(addresses, wallet),
                                                    confirm_timeout_secs=1))

    assert result.error_type == "ConfirmTimeout"
    assert len(client.sent) == 1


def test_blockhash_fetch_retries_then_gives_up(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    client = ScriptedClient(blockhash=None)

    result = asyncio.run(build_and_send_transaction(client, wallet.keypair, _instructions(addresses, wallet)))

    assert result.error_type == "BuildError"
    assert client.blockhash_calls == 3
    assert client.sent == []


def test_submitter_raises_submission_error(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    submitter = TransactionSubmitter(ScriptedClient(status=_confirmed(err="custom")))

    with pytest.raises(SubmissionError) as exc_info:
        asyncio.run(submitter.submit(_instructions(addresses, wallet), wallet, label="INIT_1000"))

    assert exc_info.value.error_type == "TxError"
    assert exc_info.value.signature is not None


def test_submitter_returns_receipt(addresses: IcoAddresses, make_wallet) -> None:
    wallet = make_wallet()
    submitter = TransactionSubmitter(ScriptedClient(status=_confirmed()))

    receipt = asyncio.run(submitter.submit(_instructions(addresses, wallet), wallet))

    assert receipt.instruction_count == 1
    assert str(Signature.from_string(receipt.signature)) == receipt.signature


def test_wallet_rejects_garbage_key() -> None:
    with pytest.raises(ValueError, match="Invalid private key format"):
        Wallet("0OIl")

    keypair = Keypair()
    assert Wallet.from_keypair(keypair).pubkey == keypair.pubkey()
