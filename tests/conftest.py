"""
Test configuration and fixtures
"""
import logging
import sys
from pathlib import Path

# Add src and the test stubs directory to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).parent / "stubs"))

import pytest
from substrateinterface import Keypair

from chain_fakes import MULTISIG, FakeSubstrate
from proxy_vesting.chain.client import ChainClient
from proxy_vesting.config_manager import DistributionConfig
from proxy_vesting.core.constants import SS58_FORMAT, UNIT


@pytest.fixture
def fake_substrate():
    return FakeSubstrate()


@pytest.fixture
def chain_client(fake_substrate):
    return ChainClient(fake_substrate)


@pytest.fixture
def alice():
    return Keypair.create_from_uri("//Alice", ss58_format=SS58_FORMAT)


@pytest.fixture
def distribution_settings():
    """Two entry allocation table that divides evenly."""
    return DistributionConfig(
        unit=UNIT,
        multisig=MULTISIG,
        vesting_templates={"short": {"start": 100, "period": 10, "period_count": 4}},
        allocations=[
            {"amount": 100, "vesting": "short"},
            {"amount": 20, "vesting": "short"},
        ],
    )


@pytest.fixture(autouse=True)
def reset_package_logger():
    """CLI runs attach handlers to captured streams; drop them after each test."""
    yield
    logging.getLogger("proxy_vesting").handlers = []


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in ("RPC_SERVER", "ACCOUNT_SECRET", "PROXY_VESTING_ENVIRONMENT"):
        monkeypatch.delenv(key, raising=False)
