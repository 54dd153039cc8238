from unittest.mock import MagicMock

import pytest

from vpcctl.config import Settings
from vpcctl.poll import Poller
from vpcctl.provider import Ec2Gateway
from vpcctl.state import Ledger


@pytest.fixture
def settings(tmp_path):
    return Settings(ledger_path=tmp_path / "vpc_resources.txt", poll_interval=0, poll_attempts=3)


@pytest.fixture
def ledger(settings):
    return Ledger(settings.ledger_path)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def poller(settings, sleeps):
    return Poller(settings.poll_interval, settings.poll_attempts, sleep=sleeps.append)


@pytest.fixture
def gateway():
    gw = MagicMock(spec=Ec2Gateway)
    gw.create_network.return_value = "vpc-1"
    gw.create_subnet.side_effect = ["subnet-pub1", "subnet-pub2", "subnet-priv1", "subnet-priv2"]
    gw.create_internet_gateway.return_value = "igw-1"
    gw.create_route_table.side_effect = ["rtb-public", "rtb-private"]
    gw.allocate_address.return_value = "eipalloc-1"
    gw.create_nat_gateway.return_value = "nat-1"
    gw.nat_gateway_state.return_value = "available"
    return gw
