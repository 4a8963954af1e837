# ico_client/core/instruction_builder.py
import hashlib

from borsh_construct import CStruct, U8, U64
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .constants import INSTRUCTION_DISCRIMINATOR_NAMESPACE
from .pubkeys import DerivedAddresses, SolanaProgramAddresses


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"{INSTRUCTION_DISCRIMINATOR_NAMESPACE}:{name}".encode()).digest()[:8]


# --- Instruction discriminators (Anchor: sha256("global:<name>")[:8]) ---
CREATE_ICO_ATA_DISCRIMINATOR = instruction_discriminator("create_ico_ata")
DEPOSIT_ICO_DISCRIMINATOR = instruction_discriminator("deposit_ico_in_ata")
BUY_TOKENS_DISCRIMINATOR = instruction_discriminator("buy_tokens")

# --- Argument layouts ---
AMOUNT_ARGS_LAYOUT = CStruct("ico_amount" / U64)
BUY_ARGS_LAYOUT = CStruct("bump" / U8, "token_amount" / U64)


class InstructionBuilder:
    @staticmethod
    def get_create_ata_instruction(payer: Pubkey, owner: Pubkey, mint: Pubkey, ata_pubkey: Pubkey) -> Instruction:
        """
        Generates the instruction to create an Associated Token Account.
        The caller is responsible for checking if the ATA already exists.
        """
        return Instruction(
            program_id=SolanaProgramAddresses.ASSOCIATED_TOKEN_ACCOUNT_PROGRAM_ID,
            accounts=[
                AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
                AccountMeta(pubkey=ata_pubkey, is_signer=False, is_writable=True),
                AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
                AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
                AccountMeta(pubkey=SolanaProgramAddresses.SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(pubkey=SolanaProgramAddresses.TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
            data=b''
        )

    @staticmethod
    def build_create_ico_ata_instruction(addresses: DerivedAddresses, ico_amount: int) -> Instruction:
        """Builds `create_ico_ata`: creates the vault + sale record and funds the vault."""
        data = CREATE_ICO_ATA_DISCRIMINATOR + AMOUNT_ARGS_LAYOUT.build({"ico_amount": ico_amount})
        accounts = [
            AccountMeta(pubkey=addresses.sale_vault, is_signer=False, is_writable=True),  # 0. icoAtaForIcoProgram
            AccountMeta(pubkey=addresses.sale_record, is_signer=False, is_writable=True),  # 1. data
            AccountMeta(pubkey=addresses.mint, is_signer=False, is_writable=False),  # 2. icoMint
            AccountMeta(pubkey=addresses.signer_token_account, is_signer=False, is_writable=True),  # 3. icoAtaForAdmin
            AccountMeta(pubkey=addresses.signer, is_signer=True, is_writable=True),  # 4. admin
            AccountMeta(pubkey=SolanaProgramAddresses.SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SolanaProgramAddresses.TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SolanaProgramAddresses.RENT_SYSVAR_PUBKEY, is_signer=False, is_writable=False),
        ]
        return Instruction(program_id=addresses.program_id, accounts=accounts, data=data)

    @staticmethod
    def build_deposit_instruction(addresses: DerivedAddresses, ico_amount: int) -> Instruction:
        """Builds `deposit_ico_in_ata`: admin tops up the vault."""
        data = DEPOSIT_ICO_DISCRIMINATOR + AMOUNT_ARGS_LAYOUT.build({"ico_amount": ico_amount})
        accounts = [
            AccountMeta(pubkey=addresses.sale_vault, is_signer=False, is_writable=True),  # 0. icoAtaForIcoProgram
            AccountMeta(pubkey=addresses.sale_record, is_signer=False, is_writable=True),  # 1. data
            AccountMeta(pubkey=addresses.mint, is_signer=False, is_writable=False),  # 2. icoMint
            AccountMeta(pubkey=addresses.signer_token_account, is_signer=False, is_writable=True),  # 3. icoAtaForAdmin
            AccountMeta(pubkey=addresses.signer, is_signer=True, is_writable=True),  # 4. admin
            AccountMeta(pubkey=SolanaProgramAddresses.TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        ]
        return Instruction(program_id=addresses.program_id, accounts=accounts, data=data)

    @staticmethod
    def build_buy_tokens_instruction(addresses: DerivedAddresses, token_amount: int) -> Instruction:
        """Builds `buy_tokens(bump, token_amount)`; SOL goes to the sale admin."""
        data = BUY_TOKENS_DISCRIMINATOR + BUY_ARGS_LAYOUT.build(
            {"bump": addresses.sale_vault_bump, "token_amount": token_amount}
        )
        accounts = [
            AccountMeta(pubkey=addresses.sale_vault, is_signer=False, is_writable=True),  # 0. icoAtaForIcoProgram
            AccountMeta(pubkey=addresses.sale_record, is_signer=False, is_writable=True),  # 1. data
            AccountMeta(pubkey=addresses.mint, is_signer=False, is_writable=False),  # 2. icoMint
            AccountMeta(pubkey=addresses.signer_token_account, is_signer=False, is_writable=True),  # 3. icoAtaForUser
            AccountMeta(pubkey=addresses.signer, is_signer=True, is_writable=True),  # 4. user
            AccountMeta(pubkey=addresses.sale_admin, is_signer=False, is_writable=True),  # 5. admin
            AccountMeta(pubkey=SolanaProgramAddresses.TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SolanaProgramAddresses.SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ]
        return Instruction(program_id=addresses.program_id, accounts=accounts, data=data)
