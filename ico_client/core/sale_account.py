# ico_client/core/sale_account.py

import hashlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from borsh_construct import CStruct, HashMap, U64
from construct import Bytes, ConstructError
from solders.pubkey import Pubkey

from .client import SolanaClient
from .constants import ACCOUNT_DISCRIMINATOR_NAMESPACE, SALE_RECORD_ACCOUNT_NAME
from .exceptions import QueryError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"{ACCOUNT_DISCRIMINATOR_NAMESPACE}:{name}".encode()).digest()[:8]


SALE_RECORD_DISCRIMINATOR = account_discriminator(SALE_RECORD_ACCOUNT_NAME)

# --- ICO `Data` account layout (after the 8-byte discriminator) ---
# The program allocates extra space for the purchase map; bytes past
# `token_price` are zero padding and are ignored.
SALE_RECORD_LAYOUT = CStruct(
    "admin" / Bytes(32),
    "total_tokens" / U64,
    "tokens_sold" / U64,
    "user_purchases" / HashMap(Bytes(32), U64),
    "token_price" / U64,
)

# --- SPL token account, leading fields only ---
TOKEN_ACCOUNT_LAYOUT = CStruct(
    "mint" / Bytes(32),
    "owner" / Bytes(32),
    "amount" / U64,
)


@dataclass(frozen=True)
class SaleRecord:
    address: Pubkey
    admin: Pubkey
    total_tokens: int
    tokens_sold: int
    token_price: int
    user_purchases: Dict[Pubkey, int] = field(default_factory=dict)

    def purchased_by(self, owner: Pubkey) -> int:
        return self.user_purchases.get(owner, 0)


@dataclass(frozen=True)
class TokenAccount:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int  # raw units


def decode_sale_record(address: Pubkey, raw_data: bytes) -> SaleRecord:
    """Decodes an ICO `Data` account. Raises QueryError on malformed data."""
    if len(raw_data) < 8 or raw_data[:8] != SALE_RECORD_DISCRIMINATOR:
        raise QueryError(f"Account {address} is not an ICO sale record (len {len(raw_data)})")
    try:
        parsed = SALE_RECORD_LAYOUT.parse(raw_data[8:])
    except ConstructError as e:
        raise QueryError(f"Borsh decode error for sale record {address}: {e}") from e
    return SaleRecord(
        address=address,
        admin=Pubkey.from_bytes(parsed.admin),
        total_tokens=parsed.total_tokens,
        tokens_sold=parsed.tokens_sold,
        token_price=parsed.token_price,
        user_purchases={Pubkey.from_bytes(k): v for k, v in parsed.user_purchases.items()},
    )


def decode_token_account(address: Pubkey, raw_data: bytes) -> TokenAccount:
    try:
        parsed = TOKEN_ACCOUNT_LAYOUT.parse(raw_data)
    except ConstructError as e:
        raise QueryError(f"Token account decode error for {address}: {e}") from e
    return TokenAccount(
        address=address,
        mint=Pubkey.from_bytes(parsed.mint),
        owner=Pubkey.from_bytes(parsed.owner),
        amount=parsed.amount,
    )


class SaleAccountReader:
    """
    Read-only queries against the ICO program.

    Not-found is reported as None; any transport, RPC or decode failure is
    raised as QueryError so callers can keep their previous state.
    """

    def __init__(self, client: SolanaClient, program_id: Pubkey):
        self.client = client
        self.program_id = program_id

    async def list_sale_records(self) -> List[SaleRecord]:
        resp = await self.client.get_program_accounts(
            self.program_id, discriminator=SALE_RECORD_DISCRIMINATOR
        )
        if resp is None:
            raise QueryError(f"get_program_accounts failed for {self.program_id}")
        records = []
        for keyed in resp.value:
            try:
                records.append(decode_sale_record(keyed.pubkey, bytes(keyed.account.data)))
            except QueryError as e:
                logger.warning(f"Skipping undecodable sale record: {e}")
        logger.debug(f"Found {len(records)} sale record(s) under {self.program_id}")
        return records

    async def fetch_sale_record(self, address: Pubkey) -> Optional[SaleRecord]:
        raw = await self._fetch_raw(address)
        return decode_sale_record(address, raw) if raw is not None else None

    async def fetch_token_account(self, address: Pubkey) -> Optional[TokenAccount]:
        raw = await self._fetch_raw(address)
        return decode_token_account(address, raw) if raw is not None else None

    async def get_native_balance(self, owner: Pubkey) -> int:
        lamports = await self.client.get_balance_lamports(owner)
        if lamports is None:
            raise QueryError(f"get_balance failed for {owner}")
        return lamports

    async def _fetch_raw(self, address: Pubkey) -> Optional[bytes]:
        resp = await self.client.get_account_info(address)
        if resp is None:
            raise QueryError(f"get_account_info failed for {address}")
        if resp.value is None:
            return None
        return bytes(resp.value.data)


def split_whole_tokens(raw_amount: int, decimals: int) -> Tuple[int, int]:
    """Returns (whole tokens, leftover raw units)."""
    return divmod(raw_amount, 10 ** decimals)
