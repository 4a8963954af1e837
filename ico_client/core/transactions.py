# ico_client/core/transactions.py

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from solders.hash import Hash as Blockhash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException

from .client import SolanaClient
from .exceptions import SubmissionError
from .wallet import Wallet
from ..utils.logger import get_logger

logger = get_logger(__name__)

BLOCKHASH_FETCH_ATTEMPTS = 3

_ACCEPTED_STATUSES = {
    "processed": [
        TransactionConfirmationStatus.Processed,
        TransactionConfirmationStatus.Confirmed,
        TransactionConfirmationStatus.Finalized,
    ],
    "confirmed": [TransactionConfirmationStatus.Confirmed, TransactionConfirmationStatus.Finalized],
    "finalized": [TransactionConfirmationStatus.Finalized],
}


@dataclass
class TransactionSendResult:
    success: bool
    signature: Optional[str] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None  # BuildError, SendError, ConfirmTimeout, TxError
    raw_error: Optional[Any] = None


@dataclass(frozen=True)
class SubmissionReceipt:
    signature: str
    instruction_count: int


async def get_latest_blockhash_from_client(client: SolanaClient) -> Optional[Blockhash]:
    """Fetches a recent blockhash, retrying briefly. Safe to retry: nothing has been sent yet."""
    for attempt in range(BLOCKHASH_FETCH_ATTEMPTS):
        blockhash = await client.get_latest_blockhash()
        if blockhash is not None:
            return blockhash
        logger.warning(f"No blockhash returned (attempt {attempt + 1}/{BLOCKHASH_FETCH_ATTEMPTS})")
        if attempt < BLOCKHASH_FETCH_ATTEMPTS - 1:
            await asyncio.sleep(0.5 + attempt * 0.5)
    return None


async def build_and_send_transaction(
        client: SolanaClient,
        payer: Keypair,
        instructions: Sequence[Instruction],
        signers: Optional[List[Keypair]] = None,
        label: str = "Transaction",
        confirm: bool = True,
        confirm_timeout_secs: int = 60,
        confirm_commitment_str: str = "confirmed",
) -> TransactionSendResult:
    """
    Builds, signs, sends and optionally confirms one versioned transaction.

    The transaction is sent exactly once. A send that errors, or a signature
    that never confirms, is reported back and never resubmitted.
    """
    signers_to_use = [payer]
    seen_pubkeys = {payer.pubkey()}
    for s in signers or []:
        if s.pubkey() not in seen_pubkeys:
            signers_to_use.append(s)
            seen_pubkeys.add(s.pubkey())

    latest_blockhash = await get_latest_blockhash_from_client(client)
    if latest_blockhash is None:
        logger.error(f"{label}: Failed to get blockhash.")
        return TransactionSendResult(success=False, error_message="Failed to get blockhash.",
                                     error_type="BuildError")

    try:
        compiled_message = MessageV0.try_compile(
            payer=payer.pubkey(),
            instructions=list(instructions),
            address_lookup_table_accounts=[],
            recent_blockhash=latest_blockhash,
        )
        tx = VersionedTransaction(compiled_message, signers_to_use)
    except Exception as e:
        logger.error(f"{label}: Failed to compile/sign transaction: {e}", exc_info=True)
        return TransactionSendResult(success=False, error_message=str(e), error_type="BuildError", raw_error=e)

    try:
        signature_obj = await client.send_transaction(tx)
    except (RPCException, SolanaRpcException) as e:
        logger.warning(f"{label}: RPC rejected transaction: {e}")
        return TransactionSendResult(success=False, error_message=str(e), error_type="SendError", raw_error=e)
    except Exception as e:
        logger.error(f"{label}: Unexpected send error: {type(e).__name__} - {e}", exc_info=True)
        return TransactionSendResult(success=False, error_message=str(e), error_type="SendError", raw_error=e)

    tx_signature_str = str(signature_obj)
    logger.info(f"{label}: Sent successfully. Signature: {tx_signature_str}")
    if not confirm:
        return TransactionSendResult(success=True, signature=tx_signature_str)

    accepted = _ACCEPTED_STATUSES.get(confirm_commitment_str.lower(), _ACCEPTED_STATUSES["confirmed"])
    status = await client.wait_for_status(signature_obj, accepted, timeout_seconds=confirm_timeout_secs)

    if status is not None and status.err is not None:
        err_msg = f"Tx {tx_signature_str} confirmed WITH ON-CHAIN ERROR: {status.err}"
        logger.error(f"{label}: {err_msg}")
        return TransactionSendResult(success=False, signature=tx_signature_str, error_message=str(status.err),
                                     error_type="TxError", raw_error=status.err)
    if status is not None and status.confirmation_status in accepted:
        logger.info(f"{label}: CONFIRMED. Sig: {tx_signature_str}, Status: {status.confirmation_status}")
        return TransactionSendResult(success=True, signature=tx_signature_str)

    seen = status.confirmation_status if status is not None else "no status"
    err_msg = f"Tx {tx_signature_str} did not reach '{confirm_commitment_str}' within {confirm_timeout_secs}s ({seen})."
    logger.warning(f"{label}: {err_msg}")
    return TransactionSendResult(success=False, signature=tx_signature_str, error_message=err_msg,
                                 error_type="ConfirmTimeout")


class TransactionSubmitter:
    """Signs with the session wallet and submits an ordered instruction list atomically."""

    def __init__(self, client: SolanaClient, commitment: str = "confirmed", confirm_timeout_secs: int = 60):
        self.client = client
        self.commitment = commitment
        self.confirm_timeout_secs = confirm_timeout_secs

    async def submit(self, instructions: Sequence[Instruction], wallet: Wallet,
                     label: str = "Transaction") -> SubmissionReceipt:
        result = await build_and_send_transaction(
            client=self.client,
            payer=wallet.keypair,
            instructions=instructions,
            label=label,
            confirm_timeout_secs=self.confirm_timeout_secs,
            confirm_commitment_str=self.commitment,
        )
        if not result.success:
            raise SubmissionError(
                result.error_message or "Transaction failed",
                error_type=result.error_type or "SendError",
                signature=result.signature,
                raw_error=result.raw_error,
            )
        return SubmissionReceipt(signature=result.signature, instruction_count=len(instructions))
