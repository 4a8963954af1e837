# ico_client/sale/__init__.py

from .base import (
    ActionResult,
    EligibilityResult,
    PurchaseIntent,
    Rejection,
    RejectionReason,
    Role,
    SaleSnapshot,
    SessionPhase,
    SessionState,
    ValidatedPurchase,
)
from .composer import TransactionComposer
from .discovery import DiscoveryOutcome, RoleOutcome, SaleDiscovery
from .eligibility import EligibilityEngine, PurchaseQuote, lamports_to_sol, quote_purchase
from .session import SaleSessionController, resolve_phase

__all__ = [
    "ActionResult",
    "EligibilityResult",
    "PurchaseIntent",
    "Rejection",
    "RejectionReason",
    "Role",
    "SaleSnapshot",
    "SessionPhase",
    "SessionState",
    "ValidatedPurchase",
    "TransactionComposer",
    "DiscoveryOutcome",
    "RoleOutcome",
    "SaleDiscovery",
    "EligibilityEngine",
    "PurchaseQuote",
    "lamports_to_sol",
    "quote_purchase",
    "SaleSessionController",
    "resolve_phase",
]
