# ico_client/sale/session.py
import asyncio
from dataclasses import replace
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..config import IcoConfig
from ..core.exceptions import ActionNotPermitted, DerivationExhausted, QueryError, SubmissionError
from ..core.pubkeys import IcoAddresses
from ..core.sale_account import SaleAccountReader, split_whole_tokens
from ..core.transactions import TransactionSubmitter
from ..core.wallet import Wallet
from ..utils.audit_logger import AuditLogger
from ..utils.logger import get_logger
from .base import (
    ActionResult,
    PurchaseIntent,
    Rejection,
    Role,
    SaleSnapshot,
    SessionPhase,
    SessionState,
)
from .composer import TransactionComposer
from .discovery import SaleDiscovery
from .eligibility import EligibilityEngine

logger = get_logger(__name__)

StateListener = Callable[[SessionState], None]


def resolve_phase(role: Role, snapshot: Optional[SaleSnapshot], signer: Optional[Pubkey]) -> Tuple[Role, SessionPhase]:
    """Maps a (role, snapshot) pair onto the session state machine."""
    if signer is None:
        return Role.UNKNOWN, SessionPhase.DISCONNECTED
    if role == Role.ADMINISTRATOR:
        return role, SessionPhase.ADMINISTRATOR_WITH_SALE
    if role == Role.ADMINISTRATOR_CANDIDATE:
        if snapshot is None:
            return role, SessionPhase.ADMINISTRATOR_NO_SALE
        if snapshot.admin == signer:
            return Role.ADMINISTRATOR, SessionPhase.ADMINISTRATOR_WITH_SALE
        # Someone else initialized first.
        return Role.BUYER, SessionPhase.BUYER
    if role == Role.BUYER:
        if snapshot is not None and snapshot.admin == signer:
            return Role.ADMINISTRATOR, SessionPhase.ADMINISTRATOR_WITH_SALE
        return role, SessionPhase.BUYER
    return Role.UNKNOWN, SessionPhase.DISCOVERING


class SaleSessionController:
    """
    Single writer of SessionState for one UI session.

    Sale discovery works without a signer. Once a wallet is attached the role is
    resolved and buy/init/deposit become available. Actions are serialized: a
    second action while one is in flight is refused, not queued.
    """

    def __init__(
            self,
            reader: SaleAccountReader,
            submitter: TransactionSubmitter,
            config: IcoConfig,
            audit_logger: Optional[AuditLogger] = None,
    ):
        self.reader = reader
        self.submitter = submitter
        self.config = config
        self.addresses = IcoAddresses(config.program_id, config.mint)
        self.discovery = SaleDiscovery(reader, self.addresses, sale_admin=config.sale_admin)
        self.eligibility = EligibilityEngine(
            max_user_total=config.max_user_total_limit,
            fee_reserve_lamports=config.network_fee_reserve_lamports,
            token_decimals=config.token_decimals,
        )
        self.composer = TransactionComposer()
        self.audit_logger = audit_logger
        self._state = SessionState()
        self._wallet: Optional[Wallet] = None
        self._action_lock = asyncio.Lock()
        self._listeners: List[StateListener] = []

    # --- state ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def wallet(self) -> Optional[Wallet]:
        return self._wallet

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set_state(self, **changes) -> None:
        self._publish(replace(self._state, **changes))

    def _publish(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Session state listener failed: {e}", exc_info=True)

    # --- discovery / signer lifecycle ---

    async def refresh_sale_snapshot(self) -> Optional[SaleSnapshot]:
        outcome = await self.discovery.refresh_sale_snapshot()
        role, phase = self._state.role, self._state.phase
        if self._state.signer is not None and phase != SessionPhase.DISCOVERING:
            role, phase = resolve_phase(role, outcome.snapshot, self._state.signer)
        self._set_state(sale_snapshot=outcome.snapshot, role=role, phase=phase, last_error=outcome.error)
        return outcome.snapshot

    async def attach_signer(self, wallet: Wallet) -> SessionState:
        logger.info(f"Signer attached: {wallet.pubkey}")
        self._wallet = wallet
        self._set_state(phase=SessionPhase.DISCOVERING, role=Role.UNKNOWN, signer=wallet.pubkey,
                        user_holding=None, native_balance=None, last_error=None)
        try:
            outcome = await self.discovery.refresh_role(wallet.pubkey)
        except DerivationExhausted as e:
            logger.error(f"Role discovery aborted: {e}")
            if self._wallet is wallet:
                self._set_state(last_error=str(e))
            return self._state

        if self._wallet is not wallet:
            logger.info(f"Signer {wallet.pubkey} detached during discovery; discarding result")
            return self._state

        role, phase = resolve_phase(outcome.role, outcome.snapshot, wallet.pubkey)
        snapshot = outcome.snapshot
        pinned = self.config.sale_admin
        if outcome.role == Role.ADMINISTRATOR and pinned is not None and pinned != wallet.pubkey:
            # The signer's own sale is not the pinned one; keep what discovery adopted.
            snapshot = self.discovery.snapshot
        if snapshot is None:
            snapshot = self._state.sale_snapshot
        self._set_state(role=role, phase=phase, sale_snapshot=snapshot, last_error=outcome.error)
        logger.info(f"Role resolved for {wallet.pubkey}: {role.value} ({phase.value})")
        await self.refresh_user_balances()
        return self._state

    def detach_signer(self) -> SessionState:
        if self._wallet is not None:
            logger.info(f"Signer detached: {self._wallet.pubkey}")
        self._wallet = None
        self._publish(SessionState())
        return self._state

    async def refresh_user_balances(self) -> None:
        wallet = self._wallet
        if wallet is None:
            return
        try:
            token_account = await self.reader.fetch_token_account(
                self.addresses.user_token_account(wallet.pubkey)
            )
            native_balance = await self.reader.get_native_balance(wallet.pubkey)
        except QueryError as e:
            logger.warning(f"Balance refresh failed for {wallet.pubkey}, keeping previous values: {e}")
            if self._wallet is wallet:
                self._set_state(last_error=str(e))
            return
        if self._wallet is not wallet:
            return
        raw = token_account.amount if token_account else 0
        whole, _ = split_whole_tokens(raw, self.config.token_decimals)
        self._set_state(user_holding=whole, native_balance=native_balance)

    async def reconcile(self) -> SessionState:
        """Re-reads sale and balances from the chain. Never raises."""
        try:
            await self.refresh_sale_snapshot()
            await self.refresh_user_balances()
        except Exception as e:
            logger.error(f"Reconciliation failed: {e}", exc_info=True)
            self._set_state(last_error=str(e))
        return self._state

    # --- actions ---

    async def buy(self, amount: int) -> ActionResult:
        return await self._run_action("BUY", amount, self._buy)

    async def initialize_sale(self, amount: int) -> ActionResult:
        return await self._run_action("INIT", amount, self._initialize_sale)

    async def deposit(self, amount: int) -> ActionResult:
        return await self._run_action("DEPOSIT", amount, self._deposit)

    def purchase_basis(self) -> int:
        """Tokens already counted against the signer's lifetime cap."""
        signer = self._state.signer
        snapshot = self._state.sale_snapshot
        if signer is not None and snapshot is not None and signer in snapshot.user_purchases:
            return snapshot.user_purchases[signer]
        return self._state.user_holding or 0

    async def _run_action(self, action: str, amount: int,
                          body: Callable[[int], Awaitable[ActionResult]]) -> ActionResult:
        if self._action_lock.locked():
            logger.warning(f"{action} refused: another action is in flight")
            return ActionResult(action=action, amount=amount, error="Another action is already in flight",
                                error_type="ActionInFlight")

        async with self._action_lock:
            signer = str(self._state.signer) if self._state.signer else None
            self._audit(f"{action}_ATTEMPT", signer, ActionResult(action=action, amount=amount))
            self._set_state(loading=True)
            try:
                result = await body(amount)
            except ActionNotPermitted as e:
                result = ActionResult(action=action, amount=amount, error=str(e), error_type="NotPermitted")
            except DerivationExhausted as e:
                logger.error(f"{action} aborted: {e}")
                result = ActionResult(action=action, amount=amount, error=str(e), error_type="DerivationExhausted")
            except QueryError as e:
                logger.warning(f"{action} aborted, required read failed: {e}")
                result = ActionResult(action=action, amount=amount, error=str(e), error_type="QueryError")
            finally:
                self._set_state(loading=False)

        if result.success:
            outcome = "SUCCESS"
        elif result.rejection is not None:
            outcome = "REJECTED"
        else:
            outcome = "FAIL"
            self._set_state(last_error=result.error)
        self._audit(f"{action}_{outcome}", signer, result)
        return result

    def _require_wallet(self) -> Wallet:
        if self._wallet is None:
            raise ActionNotPermitted("No signer attached")
        return self._wallet

    async def _buy(self, amount: int) -> ActionResult:
        wallet = self._require_wallet()
        snapshot = self._state.sale_snapshot
        intent = PurchaseIntent(
            requested_amount=amount,
            signer=wallet.pubkey,
            current_user_holding=self.purchase_basis(),
        )
        if amount <= 0:
            # Rejected without touching the RPC node.
            rejection = self.eligibility.validate_purchase(intent, snapshot, self.config.lamports_per_token, 0).rejection
            return self._rejected("BUY", amount, rejection)

        available = await self.reader.get_native_balance(wallet.pubkey)
        eligibility = self.eligibility.validate_purchase(
            intent, snapshot, self.config.lamports_per_token, available
        )
        if not eligibility.ok:
            return self._rejected("BUY", amount, eligibility.rejection)

        validated = eligibility.validated
        addresses = self.addresses.for_purchase(wallet.pubkey, validated.sale_admin)
        user_ata = await self.reader.fetch_token_account(addresses.signer_token_account)
        instructions = self.composer.build_purchase(validated, addresses, user_token_account_exists=user_ata is not None)
        logger.info(f"Buying {amount} tokens for {wallet.pubkey}: cost {validated.cost_lamports} lamports, "
                    f"{len(instructions)} instruction(s)")
        return await self._submit_and_reconcile("BUY", amount, instructions, wallet)

    async def _initialize_sale(self, amount: int) -> ActionResult:
        wallet = self._require_wallet()
        if self._state.role != Role.ADMINISTRATOR_CANDIDATE or self._state.sale_snapshot is not None:
            raise ActionNotPermitted(f"Sale initialization not available in phase {self._state.phase.value}")
        return await self._fund_vault("INIT", amount, wallet, self.composer.build_sale_initialization)

    async def _deposit(self, amount: int) -> ActionResult:
        wallet = self._require_wallet()
        snapshot = self._state.sale_snapshot
        if self._state.role != Role.ADMINISTRATOR or snapshot is None or snapshot.admin != wallet.pubkey:
            raise ActionNotPermitted("Only the sale administrator can deposit tokens")
        return await self._fund_vault("DEPOSIT", amount, wallet, self.composer.build_deposit)

    async def _fund_vault(self, action: str, amount: int, wallet: Wallet, build) -> ActionResult:
        addresses = self.addresses.for_funding(wallet.pubkey)
        admin_ata = await self.reader.fetch_token_account(addresses.signer_token_account)
        rejection = self.eligibility.validate_funding(amount, admin_ata.amount if admin_ata else 0)
        if rejection is not None:
            return self._rejected(action, amount, rejection)
        return await self._submit_and_reconcile(action, amount, build(amount, addresses), wallet)

    def _rejected(self, action: str, amount: int, rejection: Rejection) -> ActionResult:
        return ActionResult(action=action, amount=amount, error=rejection.message,
                            error_type="Rejected", rejection=rejection)

    async def _submit_and_reconcile(self, action: str, amount: int,
                                    instructions: Sequence[Instruction], wallet: Wallet) -> ActionResult:
        result = ActionResult(action=action, amount=amount, instruction_count=len(instructions))
        try:
            receipt = await self.submitter.submit(instructions, wallet, label=f"{action}_{amount}")
            result.success = True
            result.signature = receipt.signature
        except SubmissionError as e:
            logger.error(f"{action} submission failed ({e.error_type}): {e}")
            result.error = str(e)
            result.error_type = e.error_type
            result.signature = e.signature
        finally:
            await self.reconcile()
        return result

    def _audit(self, event_type: str, signer: Optional[str], result: ActionResult) -> None:
        if self.audit_logger is not None:
            self.audit_logger.log_action_event(event_type, signer, result, snapshot=self._state.sale_snapshot)
