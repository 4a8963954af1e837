"""
Pytest configuration and shared fixtures.

Adds the repository root to the Python path so tests can import ico_client
and the local fakes module without an editable install.
"""

import sys
from pathlib import Path

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from ico_client.config import IcoConfig  # noqa: E402
from ico_client.core.pubkeys import IcoAddresses  # noqa: E402
from ico_client.core.wallet import Wallet  # noqa: E402
from ico_client.sale.session import SaleSessionController  # noqa: E402
from fakes import FakeIcoLedger  # noqa: E402

PROGRAM_ID = Pubkey.from_string("6U33ovmHME1cUQ2SppitWgXajXKbprQDxkRMQLVgrwrU")
ICO_MINT = Pubkey.from_string("7GVV4V4wZemvrpNcYCKWmMb3QMqioQat9fst5TvpZAQf")


@pytest.fixture
def program_id() -> Pubkey:
    return PROGRAM_ID


@pytest.fixture
def mint() -> Pubkey:
    return ICO_MINT


@pytest.fixture
def addresses() -> IcoAddresses:
    return IcoAddresses(PROGRAM_ID, ICO_MINT)


@pytest.fixture
def config() -> IcoConfig:
    return IcoConfig(rpc_endpoint="http://127.0.0.1:8899", program_id=PROGRAM_ID, mint=ICO_MINT)


@pytest.fixture
def ledger() -> FakeIcoLedger:
    return FakeIcoLedger(PROGRAM_ID, ICO_MINT)


@pytest.fixture
def controller(ledger: FakeIcoLedger, config: IcoConfig) -> SaleSessionController:
    return SaleSessionController(reader=ledger, submitter=ledger, config=config)


@pytest.fixture
def make_wallet():
    def _make() -> Wallet:
        return Wallet.from_keypair(Keypair())
    return _make
