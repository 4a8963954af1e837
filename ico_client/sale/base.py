# ico_client/sale/base.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from solders.pubkey import Pubkey

from ..core.sale_account import SaleRecord


class Role(Enum):
    UNKNOWN = "UNKNOWN"  # No signer, or discovery could not decide
    ADMINISTRATOR = "ADMINISTRATOR"  # Signer's own sale record names them admin
    ADMINISTRATOR_CANDIDATE = "ADMINISTRATOR_CANDIDATE"  # No sale exists; signer may initialize one
    BUYER = "BUYER"  # A sale exists under another admin

    @property
    def is_admin(self) -> bool:
        return self in (Role.ADMINISTRATOR, Role.ADMINISTRATOR_CANDIDATE)


class SessionPhase(Enum):
    DISCONNECTED = "DISCONNECTED"
    DISCOVERING = "DISCOVERING"
    ADMINISTRATOR_NO_SALE = "ADMINISTRATOR_NO_SALE"
    ADMINISTRATOR_WITH_SALE = "ADMINISTRATOR_WITH_SALE"
    BUYER = "BUYER"


@dataclass(frozen=True)
class SaleSnapshot:
    address: Pubkey
    admin: Pubkey
    total_supply: int
    sold: int
    token_price: int
    user_purchases: Dict[Pubkey, int] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: SaleRecord) -> "SaleSnapshot":
        return cls(
            address=record.address,
            admin=record.admin,
            total_supply=record.total_tokens,
            sold=record.tokens_sold,
            token_price=record.token_price,
            user_purchases=dict(record.user_purchases),
        )

    @property
    def remaining(self) -> int:
        return max(0, self.total_supply - self.sold)

    @property
    def progress_pct(self) -> float:
        if self.total_supply == 0:
            return 0.0
        return self.sold * 100.0 / self.total_supply

    def purchased_by(self, owner: Pubkey) -> int:
        return self.user_purchases.get(owner, 0)


@dataclass(frozen=True)
class PurchaseIntent:
    requested_amount: int
    signer: Pubkey
    current_user_holding: int


@dataclass(frozen=True)
class ValidatedPurchase:
    intent: PurchaseIntent
    sale_admin: Pubkey
    cost_lamports: int
    fee_reserve_lamports: int

    @property
    def requested_amount(self) -> int:
        return self.intent.requested_amount


class RejectionReason(Enum):
    NON_POSITIVE_AMOUNT = "NON_POSITIVE_AMOUNT"
    SALE_UNINITIALIZED = "SALE_UNINITIALIZED"
    USER_CAP_EXCEEDED = "USER_CAP_EXCEEDED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_TOKEN_BALANCE = "INSUFFICIENT_TOKEN_BALANCE"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str
    remaining: Optional[int] = None  # USER_CAP_EXCEEDED
    shortfall: Optional[int] = None  # INSUFFICIENT_* (smallest units)


@dataclass(frozen=True)
class EligibilityResult:
    validated: Optional[ValidatedPurchase] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.validated is not None


@dataclass(frozen=True)
class SessionState:
    """
    What the presentation layer reads. Only SaleSessionController writes it,
    always by swapping in a new instance.
    """
    phase: SessionPhase = SessionPhase.DISCONNECTED
    role: Role = Role.UNKNOWN
    signer: Optional[Pubkey] = None
    sale_snapshot: Optional[SaleSnapshot] = None
    user_holding: Optional[int] = None  # whole tokens
    native_balance: Optional[int] = None  # lamports
    loading: bool = False
    last_error: Optional[str] = None


@dataclass
class ActionResult:
    action: str
    success: bool = False
    signature: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None  # Rejected, ActionInFlight, NotPermitted, DerivationExhausted, Build/Send/Tx errors
    rejection: Optional[Rejection] = None
    amount: Optional[int] = None
    instruction_count: int = 0
    timestamp: int = field(default_factory=lambda: int(datetime.now(timezone.utc).timestamp()))
