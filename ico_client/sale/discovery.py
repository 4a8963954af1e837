# ico_client/sale/discovery.py
from dataclasses import dataclass
from typing import List, Optional

from solders.pubkey import Pubkey

from ..core.exceptions import QueryError
from ..core.pubkeys import IcoAddresses
from ..core.sale_account import SaleAccountReader, SaleRecord
from ..utils.logger import get_logger
from .base import Role, SaleSnapshot

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscoveryOutcome:
    snapshot: Optional[SaleSnapshot]
    error: Optional[str] = None  # soft failure; snapshot is the previous one

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RoleOutcome:
    role: Role
    snapshot: Optional[SaleSnapshot]
    error: Optional[str] = None


class SaleDiscovery:
    """Finds the sale, its admin, and the signer's role through read queries only."""

    def __init__(self, reader: SaleAccountReader, addresses: IcoAddresses,
                 sale_admin: Optional[Pubkey] = None):
        self.reader = reader
        self.addresses = addresses
        self.sale_admin = sale_admin
        self._snapshot: Optional[SaleSnapshot] = None

    @property
    def snapshot(self) -> Optional[SaleSnapshot]:
        return self._snapshot

    def _select(self, records: List[SaleRecord]) -> Optional[SaleRecord]:
        if not records:
            return None
        if self.sale_admin is not None:
            pinned = [r for r in records if r.admin == self.sale_admin]
            if not pinned:
                logger.warning(f"No sale record for pinned admin {self.sale_admin} among {len(records)} record(s)")
                return None
            return pinned[0]
        ordered = sorted(records, key=lambda r: bytes(r.address))
        if len(ordered) > 1:
            logger.warning(
                f"{len(ordered)} sale records found; adopting {ordered[0].address} (admin {ordered[0].admin}). "
                f"Set SALE_ADMIN to pin a specific sale."
            )
        return ordered[0]

    async def refresh_sale_snapshot(self) -> DiscoveryOutcome:
        try:
            records = await self.reader.list_sale_records()
        except QueryError as e:
            logger.warning(f"Sale snapshot refresh failed, keeping previous snapshot: {e}")
            return DiscoveryOutcome(snapshot=self._snapshot, error=str(e))
        except Exception as e:
            logger.error(f"Unexpected error refreshing sale snapshot: {e}", exc_info=True)
            return DiscoveryOutcome(snapshot=self._snapshot, error=str(e))

        selected = self._select(records)
        self._snapshot = SaleSnapshot.from_record(selected) if selected else None
        if self._snapshot:
            logger.debug(f"Sale snapshot: sold {self._snapshot.sold}/{self._snapshot.total_supply}, "
                         f"admin {self._snapshot.admin}")
        return DiscoveryOutcome(snapshot=self._snapshot)

    async def refresh_role(self, signer: Pubkey) -> RoleOutcome:
        logger.info(f"Checking admin status for: {signer}")
        own_record: Optional[SaleRecord] = None
        try:
            record_address, _ = self.addresses.sale_record(signer)
            own_record = await self.reader.fetch_sale_record(record_address)
        except QueryError as e:
            logger.info(f"Own sale record lookup failed for {signer}, treating as absent: {e}")

        if own_record is not None and own_record.admin == signer:
            snapshot = SaleSnapshot.from_record(own_record)
            if self.sale_admin is None or self.sale_admin == signer:
                self._snapshot = snapshot
            return RoleOutcome(role=Role.ADMINISTRATOR, snapshot=snapshot)

        outcome = await self.refresh_sale_snapshot()
        if outcome.snapshot is None:
            if outcome.error is not None:
                return RoleOutcome(role=Role.UNKNOWN, snapshot=None, error=outcome.error)
            return RoleOutcome(role=Role.ADMINISTRATOR_CANDIDATE, snapshot=None)
        if outcome.snapshot.admin == signer:
            return RoleOutcome(role=Role.ADMINISTRATOR, snapshot=outcome.snapshot, error=outcome.error)
        return RoleOutcome(role=Role.BUYER, snapshot=outcome.snapshot, error=outcome.error)
