# ico_client/sale/composer.py
from typing import List

from solders.instruction import Instruction

from ..core.instruction_builder import InstructionBuilder
from ..core.pubkeys import DerivedAddresses
from ..utils.logger import get_logger
from .base import ValidatedPurchase

logger = get_logger(__name__)


class TransactionComposer:
    """
    Assembles the ordered instruction list for one atomic transaction.
    Pure construction: nothing is signed or sent here.
    """

    @staticmethod
    def build_purchase(validated: ValidatedPurchase, addresses: DerivedAddresses,
                       user_token_account_exists: bool) -> List[Instruction]:
        if addresses.sale_admin != validated.sale_admin:
            raise ValueError(f"Addresses derived for admin {addresses.sale_admin}, "
                             f"purchase validated against {validated.sale_admin}")
        instructions: List[Instruction] = []
        if not user_token_account_exists:
            logger.info(f"User ATA {addresses.signer_token_account} does not exist. Adding create instruction.")
            instructions.append(InstructionBuilder.get_create_ata_instruction(
                payer=addresses.signer, owner=addresses.signer, mint=addresses.mint,
                ata_pubkey=addresses.signer_token_account,
            ))
        instructions.append(
            InstructionBuilder.build_buy_tokens_instruction(addresses, validated.requested_amount)
        )
        return instructions

    @staticmethod
    def build_sale_initialization(amount: int, addresses: DerivedAddresses) -> List[Instruction]:
        return [InstructionBuilder.build_create_ico_ata_instruction(addresses, amount)]

    @staticmethod
    def build_deposit(amount: int, addresses: DerivedAddresses) -> List[Instruction]:
        return [InstructionBuilder.build_deposit_instruction(addresses, amount)]
