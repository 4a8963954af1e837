# ico_client/utils/audit_logger.py

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from ..core.constants import LAMPORTS_PER_SOL
from .logger import get_logger

if TYPE_CHECKING:
    from ..sale.base import ActionResult, SaleSnapshot

audit_log = get_logger("ico_client.AuditLogger")


class AuditLogger:
    """
    Records one JSON line per sale action (attempt, success, rejection, failure).
    Always logs; additionally appends to `filepath` when `log_to_file` is set.
    """

    def __init__(self, log_to_file: bool = False, filepath: str = "ico_audit.log"):
        self.log_to_file = log_to_file
        self.filepath = filepath
        audit_log.info("AuditLogger initialized.")

    def log_action_event(
            self,
            event_type: str,  # e.g. "BUY_ATTEMPT", "BUY_SUCCESS", "INIT_FAIL", "DEPOSIT_REJECTED"
            signer: Optional[str],
            result: Optional["ActionResult"] = None,
            snapshot: Optional["SaleSnapshot"] = None,
    ) -> dict:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type.upper(),
            "signer": signer,
            "success": result.success if result else None,
            "signature": result.signature if result else None,
            "amount": result.amount if result else None,
            "error": result.error if result else None,
            "error_type": result.error_type if result else None,
        }

        if result and result.rejection:
            log_entry["rejection_reason"] = result.rejection.reason.value
            log_entry["rejection_remaining"] = result.rejection.remaining
            log_entry["rejection_shortfall"] = result.rejection.shortfall

        if snapshot:
            log_entry["sale_admin"] = str(snapshot.admin)
            log_entry["sale_sold"] = snapshot.sold
            log_entry["sale_total_supply"] = snapshot.total_supply
            log_entry["sale_price_sol"] = snapshot.token_price / LAMPORTS_PER_SOL

        log_message = json.dumps(log_entry, default=str)
        audit_log.info(log_message)

        if self.log_to_file:
            try:
                with open(self.filepath, "a") as f:
                    f.write(log_message + "\n")
            except OSError as e:
                audit_log.error(f"Failed to write audit log to file {self.filepath}: {e}")
        return log_entry
