"""
Tests for `ico_client/sale/eligibility.py`.

Covers:
- Purchase checks run in a fixed order and stop at the first failure.
- Cap and balance rejections carry the remaining allowance / shortfall.
- Cost arithmetic stays exact for fractional prices.
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ico_client.sale.base import PurchaseIntent, RejectionReason, SaleSnapshot
from ico_client.sale.eligibility import EligibilityEngine, lamports_to_sol, purchase_cost, quote_purchase

PRICE = 1_000_000
FEE = 5000


def _engine() -> EligibilityEngine:
    return EligibilityEngine(max_user_total=2000, fee_reserve_lamports=FEE, token_decimals=9)


def _snapshot(admin: Pubkey) -> SaleSnapshot:
    return SaleSnapshot(address=Keypair().pubkey(), admin=admin, total_supply=1000, sold=200, token_price=PRICE)


def _intent(amount: int, holding: int = 0) -> PurchaseIntent:
    return PurchaseIntent(requested_amount=amount, signer=Keypair().pubkey(), current_user_holding=holding)


def test_non_positive_amount_is_rejected_first() -> None:
    """Zero and negative amounts fail before the missing sale is even considered."""

    for amount in (0, -5):
        result = _engine().validate_purchase(_intent(amount), None, PRICE, 0)
        assert not result.ok
        assert result.rejection.reason == RejectionReason.NON_POSITIVE_AMOUNT


def test_missing_sale_is_rejected() -> None:
    result = _engine().validate_purchase(_intent(10), None, PRICE, 10 ** 12)

    assert result.rejection.reason == RejectionReason.SALE_UNINITIALIZED


def test_cap_exceeded_reports_remaining_allowance() -> None:
    """Holding 1900 of 2000 and asking for 150 more leaves room for 100."""

    admin = Keypair().pubkey()
    result = _engine().validate_purchase(_intent(150, holding=1900), _snapshot(admin), PRICE, 10 ** 12)

    assert result.rejection.reason == RejectionReason.USER_CAP_EXCEEDED
    assert result.rejection.remaining == 100


def test_cap_is_checked_before_balance() -> None:
    admin = Keypair().pubkey()
    result = _engine().validate_purchase(_intent(150, holding=1900), _snapshot(admin), PRICE, 0)

    assert result.rejection.reason == RejectionReason.USER_CAP_EXCEEDED


def test_remaining_allowance_never_negative() -> None:
    admin = Keypair().pubkey()
    result = _engine().validate_purchase(_intent(1, holding=2500), _snapshot(admin), PRICE, 10 ** 12)

    assert result.rejection.remaining == 0


def test_request_up_to_cap_is_accepted() -> None:
    admin = Keypair().pubkey()
    result = _engine().validate_purchase(_intent(100, holding=1900), _snapshot(admin), PRICE, 10 ** 12)

    assert result.ok
    assert result.validated.sale_admin == admin
    assert result.validated.cost_lamports == 100 * PRICE


def test_insufficient_balance_reports_shortfall() -> None:
    admin = Keypair().pubkey()
    available = 50 * PRICE + FEE - 1

    result = _engine().validate_purchase(_intent(50), _snapshot(admin), PRICE, available)

    assert result.rejection.reason == RejectionReason.INSUFFICIENT_BALANCE
    assert result.rejection.shortfall == 1


def test_exact_balance_is_enough() -> None:
    admin = Keypair().pubkey()

    result = _engine().validate_purchase(_intent(50), _snapshot(admin), PRICE, 50 * PRICE + FEE)

    assert result.ok
    assert result.validated.fee_reserve_lamports == FEE


def test_fractional_price_is_exact() -> None:
    """Three tokens at 1/3 lamport each cost exactly one lamport."""

    assert purchase_cost(3, Fraction(1, 3)) == 1

    admin = Keypair().pubkey()
    engine = _engine()
    ok = engine.validate_purchase(_intent(3), _snapshot(admin), Fraction(1, 3), 1 + FEE)
    short = engine.validate_purchase(_intent(4), _snapshot(admin), Fraction(1, 3), 1 + FEE)

    assert ok.ok
    assert ok.validated.cost_lamports == 1
    assert short.rejection.reason == RejectionReason.INSUFFICIENT_BALANCE
    assert short.rejection.shortfall == 1


def test_validate_funding() -> None:
    engine = _engine()

    assert engine.validate_funding(10, 10 * 10 ** 9) is None
    assert engine.validate_funding(0, 10 ** 18).reason == RejectionReason.NON_POSITIVE_AMOUNT

    rejection = engine.validate_funding(10, 9 * 10 ** 9)
    assert rejection.reason == RejectionReason.INSUFFICIENT_TOKEN_BALANCE
    assert rejection.shortfall == 10 ** 9


def test_quote_converts_to_sol_for_display() -> None:
    quote = quote_purchase(10, PRICE, FEE)

    assert quote.cost_lamports == 10_000_000
    assert quote.total_lamports == 10_005_000
    assert quote.cost_sol == Decimal("0.01")
    assert quote.total_sol == Decimal("0.010005")
    assert lamports_to_sol(Fraction(1, 2)) == Decimal("0.0000000005")
