# ico_client/cli.py

import argparse
import asyncio
import sys
from typing import Optional

from .config import IcoConfig, load_config
from .core.client import SolanaClient
from .core.exceptions import ConfigError
from .core.sale_account import SaleAccountReader
from .core.transactions import TransactionSubmitter
from .core.wallet import Wallet
from .sale.base import ActionResult, SessionState
from .sale.eligibility import lamports_to_sol, quote_purchase
from .sale.session import SaleSessionController
from .utils.audit_logger import AuditLogger
from .utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ico-client", description="Solana ICO sale client")
    parser.add_argument("--env", help="Path to a .env file (default: search from cwd)")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show the current sale snapshot")
    sub.add_parser("whoami", help="Resolve the configured signer's role and balances")
    for name, text in (("buy", "Buy AMOUNT tokens"),
                       ("init", "Initialize the sale with AMOUNT tokens"),
                       ("deposit", "Deposit AMOUNT more tokens into the sale vault"),
                       ("quote", "Show the SOL cost of AMOUNT tokens")):
        p = sub.add_parser(name, help=text)
        p.add_argument("amount", type=int)
    return parser


def format_state(state: SessionState, config: IcoConfig) -> str:
    lines = [f"Phase:          {state.phase.value}", f"Role:           {state.role.value}"]
    if state.signer is not None:
        lines.append(f"Signer:         {state.signer}")
    snap = state.sale_snapshot
    if snap is None:
        lines.append("Sale:           not initialized")
    else:
        lines.append(f"Sale admin:     {snap.admin}")
        lines.append(f"Sold:           {snap.sold}/{snap.total_supply} ({snap.progress_pct:.2f}%)")
        lines.append(f"Remaining:      {snap.remaining}")
        lines.append(f"Price:          {lamports_to_sol(config.lamports_per_token)} SOL / token")
    if state.user_holding is not None:
        lines.append(f"Your tokens:    {state.user_holding}/{config.max_user_total_limit}")
    if state.native_balance is not None:
        lines.append(f"SOL balance:    {lamports_to_sol(state.native_balance)}")
    if state.last_error:
        lines.append(f"Last error:     {state.last_error}")
    return "\n".join(lines)


def format_result(result: ActionResult) -> str:
    if result.success:
        return f"{result.action} {result.amount}: OK (signature {result.signature})"
    return f"{result.action} {result.amount}: FAILED [{result.error_type}] {result.error}"


async def run(args: argparse.Namespace, config: IcoConfig) -> int:
    if args.command == "quote":
        quote = quote_purchase(args.amount, config.lamports_per_token, config.network_fee_reserve_lamports)
        print(f"Tokens:       {quote.token_amount}")
        print(f"Cost:         {quote.cost_sol} SOL")
        print(f"Network fee:  {quote.fee_reserve_sol} SOL")
        print(f"Total:        {quote.total_sol} SOL")
        return 0

    wallet: Optional[Wallet] = None
    if args.command != "status":
        if not config.private_key:
            logger.critical("SOLANA_PRIVATE_KEY is required for this command.")
            return 1
        try:
            wallet = Wallet(config.private_key)
        except ValueError as e:
            logger.critical(f"Wallet initialization error: {e}")
            return 1

    async with SolanaClient(config.rpc_endpoint, commitment=config.commitment) as client:
        controller = SaleSessionController(
            reader=SaleAccountReader(client, config.program_id),
            submitter=TransactionSubmitter(client, commitment=config.commitment,
                                           confirm_timeout_secs=config.confirm_timeout_seconds),
            config=config,
            audit_logger=AuditLogger(log_to_file=bool(config.audit_log_file),
                                     filepath=config.audit_log_file or "ico_audit.log"),
        )
        await controller.refresh_sale_snapshot()
        if wallet is not None:
            await controller.attach_signer(wallet)

        result: Optional[ActionResult] = None
        if args.command == "buy":
            result = await controller.buy(args.amount)
        elif args.command == "init":
            result = await controller.initialize_sale(args.amount)
        elif args.command == "deposit":
            result = await controller.deposit(args.amount)

        if result is not None:
            print(format_result(result))
        print(format_state(controller.state, config))
        return 0 if result is None or result.success else 1


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.env)
    except ConfigError as e:
        logger.critical(f"Config load failed: {e}")
        return 1
    setup_logging(config.log_level)
    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("Cancelled.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
