# ico_client/core/pubkeys.py

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from solders.pubkey import Pubkey
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from .constants import MAX_SEED_LEN, MAX_SEEDS, SALE_RECORD_SEED, SYSTEM_PROGRAM_ID
from .exceptions import DerivationExhausted


class SolanaProgramAddresses:
    SYSTEM_PROGRAM_ID: Pubkey = SYSTEM_PROGRAM_ID
    TOKEN_PROGRAM_ID: Pubkey = TOKEN_PROGRAM_ID
    ASSOCIATED_TOKEN_ACCOUNT_PROGRAM_ID: Pubkey = ASSOCIATED_TOKEN_PROGRAM_ID
    RENT_SYSVAR_PUBKEY: Pubkey = Pubkey.from_string(
        "SysvarRent111111111111111111111111111111111"
    )


def derive_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """
    Finds the program-derived address for `seeds` under `program_id`.

    Bumps are tried from 255 down to 0; the first one solders accepts as an
    off-curve address wins. Raises DerivationExhausted if none does.
    """
    if len(seeds) > MAX_SEEDS - 1:
        raise ValueError(f"Too many seeds: {len(seeds)} (max {MAX_SEEDS - 1} plus bump)")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"Seed longer than {MAX_SEED_LEN} bytes: {len(seed)}")

    for bump in range(255, -1, -1):
        try:
            return Pubkey.create_program_address(list(seeds) + [bytes([bump])], program_id), bump
        except BaseException as e:
            # solders reports an on-curve result as ValueError or as a pyo3 PanicException.
            if not _is_rejected_bump(e):
                raise

    raise DerivationExhausted(",".join(s.hex() for s in seeds), str(program_id))


def _is_rejected_bump(error: BaseException) -> bool:
    return isinstance(error, ValueError) or type(error).__name__ == "PanicException"


@dataclass(frozen=True)
class DerivedAddresses:
    """Every account address one sale action needs, resolved up front."""
    program_id: Pubkey
    mint: Pubkey
    sale_vault: Pubkey
    sale_vault_bump: int
    sale_record: Pubkey
    sale_admin: Pubkey
    signer: Pubkey
    signer_token_account: Pubkey


class IcoAddresses:
    """Address derivations for one ICO program + mint pair."""

    def __init__(self, program_id: Pubkey, mint: Pubkey):
        self.program_id = program_id
        self.mint = mint
        self._vault: Optional[Tuple[Pubkey, int]] = None

    def sale_vault(self) -> Tuple[Pubkey, int]:
        # Vault is owner-independent; cache it.
        if self._vault is None:
            self._vault = derive_program_address([bytes(self.mint)], self.program_id)
        return self._vault

    def sale_record(self, owner: Pubkey) -> Tuple[Pubkey, int]:
        return derive_program_address([SALE_RECORD_SEED, bytes(owner)], self.program_id)

    def user_token_account(self, owner: Pubkey) -> Pubkey:
        return get_associated_token_address(owner, self.mint)

    def for_purchase(self, buyer: Pubkey, sale_admin: Pubkey) -> DerivedAddresses:
        vault, bump = self.sale_vault()
        record, _ = self.sale_record(sale_admin)
        return DerivedAddresses(
            program_id=self.program_id,
            mint=self.mint,
            sale_vault=vault,
            sale_vault_bump=bump,
            sale_record=record,
            sale_admin=sale_admin,
            signer=buyer,
            signer_token_account=self.user_token_account(buyer),
        )

    def for_funding(self, admin: Pubkey) -> DerivedAddresses:
        return self.for_purchase(admin, admin)
