# ico_client/core/__init__.py

from .client import SolanaClient
from .wallet import Wallet
from .transactions import SubmissionReceipt, TransactionSendResult, TransactionSubmitter
from .instruction_builder import InstructionBuilder
from .sale_account import SaleAccountReader, SaleRecord, TokenAccount
from .pubkeys import DerivedAddresses, IcoAddresses, SolanaProgramAddresses, derive_program_address

__all__ = [
    "SolanaClient",
    "Wallet",
    "SubmissionReceipt",
    "TransactionSendResult",
    "TransactionSubmitter",
    "InstructionBuilder",
    "SaleAccountReader",
    "SaleRecord",
    "TokenAccount",
    "DerivedAddresses",
    "IcoAddresses",
    "SolanaProgramAddresses",
    "derive_program_address",
]
