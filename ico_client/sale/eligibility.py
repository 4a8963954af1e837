# ico_client/sale/eligibility.py
"""
Advisory pre-validation of sale actions.

The on-chain program re-checks everything and is the final arbiter; these
checks only stop requests that are certain to fail before anything is signed.
All cost arithmetic stays in integer smallest units (or exact fractions when
the price is fractional) and is converted to SOL only for display.
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Union

from ..core.constants import LAMPORTS_PER_SOL
from ..utils.logger import get_logger
from .base import (
    EligibilityResult,
    PurchaseIntent,
    Rejection,
    RejectionReason,
    SaleSnapshot,
    ValidatedPurchase,
)

logger = get_logger(__name__)

Price = Union[int, Fraction]


def lamports_to_sol(lamports: Union[int, Fraction]) -> Decimal:
    if isinstance(lamports, Fraction):
        return Decimal(lamports.numerator) / Decimal(lamports.denominator) / Decimal(LAMPORTS_PER_SOL)
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)


def purchase_cost(requested_amount: int, price_per_token: Price) -> Fraction:
    return Fraction(requested_amount) * Fraction(price_per_token)


@dataclass(frozen=True)
class PurchaseQuote:
    token_amount: int
    cost_lamports: int
    fee_reserve_lamports: int

    @property
    def total_lamports(self) -> int:
        return self.cost_lamports + self.fee_reserve_lamports

    @property
    def cost_sol(self) -> Decimal:
        return lamports_to_sol(self.cost_lamports)

    @property
    def fee_reserve_sol(self) -> Decimal:
        return lamports_to_sol(self.fee_reserve_lamports)

    @property
    def total_sol(self) -> Decimal:
        return lamports_to_sol(self.total_lamports)


def quote_purchase(token_amount: int, price_per_token: Price, fee_reserve_lamports: int) -> PurchaseQuote:
    """Cost breakdown for display; fractional lamports are rounded up."""
    return PurchaseQuote(
        token_amount=token_amount,
        cost_lamports=math.ceil(purchase_cost(token_amount, price_per_token)),
        fee_reserve_lamports=fee_reserve_lamports,
    )


class EligibilityEngine:
    def __init__(self, max_user_total: int, fee_reserve_lamports: int, token_decimals: int):
        self.max_user_total = max_user_total
        self.fee_reserve_lamports = fee_reserve_lamports
        self.token_decimals = token_decimals

    def validate_purchase(
            self,
            intent: PurchaseIntent,
            snapshot: Optional[SaleSnapshot],
            price_per_token: Price,
            available_balance: int,
    ) -> EligibilityResult:
        requested = intent.requested_amount
        if requested <= 0:
            return self._reject(RejectionReason.NON_POSITIVE_AMOUNT,
                                f"Amount must be positive, got {requested}")

        if snapshot is None:
            return self._reject(RejectionReason.SALE_UNINITIALIZED, "ICO has not been initialized yet")

        holding = intent.current_user_holding
        if holding + requested > self.max_user_total:
            remaining = max(0, self.max_user_total - holding)
            return self._reject(
                RejectionReason.USER_CAP_EXCEEDED,
                f"You can purchase up to {remaining} more tokens ({holding}/{self.max_user_total} owned)",
                remaining=remaining,
            )

        cost = purchase_cost(requested, price_per_token)
        required = cost + self.fee_reserve_lamports
        if available_balance < required:
            shortfall = math.ceil(required - available_balance)
            return self._reject(
                RejectionReason.INSUFFICIENT_BALANCE,
                f"Insufficient balance. Need {lamports_to_sol(cost)} SOL plus "
                f"{lamports_to_sol(self.fee_reserve_lamports)} SOL fee, short by {lamports_to_sol(shortfall)} SOL",
                shortfall=shortfall,
            )

        return EligibilityResult(validated=ValidatedPurchase(
            intent=intent,
            sale_admin=snapshot.admin,
            cost_lamports=math.ceil(cost),
            fee_reserve_lamports=self.fee_reserve_lamports,
        ))

    def validate_funding(self, amount: int, token_holding_raw: int) -> Optional[Rejection]:
        """Checks an initialization/deposit amount (whole tokens) against the admin's token account."""
        if amount <= 0:
            return Rejection(RejectionReason.NON_POSITIVE_AMOUNT, f"Amount must be positive, got {amount}")
        needed_raw = amount * 10 ** self.token_decimals
        if token_holding_raw < needed_raw:
            return Rejection(
                RejectionReason.INSUFFICIENT_TOKEN_BALANCE,
                f"Token account holds {token_holding_raw} raw units, {needed_raw} needed",
                shortfall=needed_raw - token_holding_raw,
            )
        return None

    @staticmethod
    def _reject(reason: RejectionReason, message: str, **kwargs) -> EligibilityResult:
        logger.info(f"Purchase rejected ({reason.value}): {message}")
        return EligibilityResult(rejection=Rejection(reason, message, **kwargs))
