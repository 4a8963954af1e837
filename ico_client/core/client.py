# ico_client/core/client.py

import asyncio
from typing import List, Optional, Sequence, Union

import base58
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.rpc.responses import (
    GetAccountInfoResp,
    GetBalanceResp,
    GetLatestBlockhashResp,
    GetProgramAccountsResp,
    GetSignatureStatusesResp,
    SendTransactionResp,
)
from solders.transaction_status import TransactionStatus

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.types import MemcmpOpts, TxOpts

from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class SolanaClient:
    """
    Thin async wrapper over solana-py's AsyncClient.

    Read methods log and return None on RPC/transport failure; a response whose
    `value` is None means the account does not exist.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        commitment: Commitment = Confirmed,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        skip_preflight: bool = False,
    ) -> None:
        self.rpc_endpoint = rpc_endpoint
        self.async_client = AsyncClient(
            rpc_endpoint, commitment=commitment, timeout=timeout_seconds
        )
        self.commitment = commitment
        self.timeout_seconds = timeout_seconds
        self.skip_preflight = skip_preflight
        self.tx_opts = TxOpts(
            skip_preflight=self.skip_preflight,
            preflight_commitment=self.commitment,
            max_retries=0,
        )
        logger.info(f"SolanaClient initialized: {rpc_endpoint} @ {commitment}")

    async def __aenter__(self) -> "SolanaClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        try:
            await self.async_client.close()
            logger.info("SolanaClient connection closed.")
        except Exception as e:
            logger.warning(f"Error closing SolanaClient: {e}")

    async def get_latest_blockhash(self) -> Optional[Hash]:
        try:
            resp: GetLatestBlockhashResp = await self.async_client.get_latest_blockhash(
                self.commitment
            )
            return resp.value.blockhash if resp.value else None
        except Exception as e:
            logger.error(f"Error get_latest_blockhash: {e}", exc_info=True)
            return None

    async def get_account_info(
        self, pubkey: Pubkey, commitment: Optional[Commitment] = None
    ) -> Optional[GetAccountInfoResp]:
        try:
            return await self.async_client.get_account_info(
                pubkey, commitment=commitment or self.commitment, encoding="base64"
            )
        except Exception as e:
            logger.error(f"Error get_account_info {pubkey}: {e}", exc_info=True)
            return None

    async def get_program_accounts(
        self,
        program_id: Pubkey,
        discriminator: Optional[bytes] = None,
        data_size: Optional[int] = None,
        commitment: Optional[Commitment] = None,
    ) -> Optional[GetProgramAccountsResp]:
        filters: List[Union[int, MemcmpOpts]] = []
        if discriminator:
            filters.append(MemcmpOpts(offset=0, bytes=base58.b58encode(discriminator).decode()))
        if data_size is not None:
            filters.append(data_size)
        try:
            return await self.async_client.get_program_accounts(
                program_id,
                commitment=commitment or self.commitment,
                encoding="base64",
                filters=filters or None,
            )
        except Exception as e:
            logger.error(f"Error get_program_accounts {program_id}: {e}", exc_info=True)
            return None

    async def get_balance_lamports(self, pubkey: Pubkey) -> Optional[int]:
        try:
            resp: GetBalanceResp = await self.async_client.get_balance(
                pubkey, self.commitment
            )
            return resp.value
        except Exception as e:
            logger.error(f"Error get_balance {pubkey}: {e}", exc_info=True)
            return None

    async def send_transaction(
        self, transaction: VersionedTransaction, opts: Optional[TxOpts] = None
    ) -> Signature:
        """Sends once. Errors propagate to the caller; nothing is retried here."""
        resp: SendTransactionResp = await self.async_client.send_transaction(
            transaction, opts=opts or self.tx_opts
        )
        logger.info(f"Tx sent: {resp.value}")
        return resp.value

    async def get_signature_status(self, signature: Signature) -> Optional[TransactionStatus]:
        try:
            resp: GetSignatureStatusesResp = await self.async_client.get_signature_statuses(
                [signature]
            )
            return resp.value[0] if resp.value else None
        except Exception as e:
            logger.warning(f"Error get_signature_statuses {signature}: {e}")
            return None

    async def wait_for_status(
        self,
        signature: Signature,
        accepted: Sequence[object],
        timeout_seconds: Optional[float] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> Optional[TransactionStatus]:
        """
        Polls the signature until it errors or reaches one of the `accepted`
        confirmation statuses. Returns the last status seen (None if the
        network never reported one before the timeout).
        """
        _timeout = timeout_seconds or self.timeout_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + _timeout
        last: Optional[TransactionStatus] = None
        while True:
            status = await self.get_signature_status(signature)
            if status is not None:
                last = status
                if status.err is not None or status.confirmation_status in accepted:
                    return status
            if loop.time() >= deadline:
                logger.warning(f"Timed out after {_timeout}s waiting on {signature}")
                return last
            await asyncio.sleep(poll_interval)
