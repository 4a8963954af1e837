# ico_client/core/wallet.py

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..utils.logger import get_logger

logger = get_logger(__name__)


class Wallet:
    """ Represents the user's wallet with keypair for signing. """
    def __init__(self, private_key_bs58: str):
        try:
            private_key_bytes: bytes = base58.b58decode(private_key_bs58)
            self.keypair = Keypair.from_bytes(private_key_bytes)
            self.pubkey: Pubkey = self.keypair.pubkey()
            logger.info(f"Wallet initialized for pubkey: {self.pubkey}")
        except ValueError as e:
            logger.error(f"Invalid base58 private key provided: {e}")
            raise ValueError("Invalid private key format") from e

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> "Wallet":
        return cls(base58.b58encode(bytes(keypair)).decode())

    def __repr__(self) -> str:
        return f"Wallet({self.pubkey})"
