"""
Tests for the click CLI.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError
from click.testing import CliRunner

from vpcctl.cli import Action, main
from vpcctl.state import Ledger


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "vpc_resources.txt"


@pytest.fixture
def env(ledger_path):
    return {
        "VPCCTL_LEDGER": str(ledger_path),
        "VPCCTL_POLL_INTERVAL": "0",
        "VPCCTL_POLL_ATTEMPTS": "2",
    }


@pytest.fixture
def mock_gateway():
    with patch("vpcctl.cli.Ec2Gateway") as gateway_cls:
        gw = gateway_cls.return_value
        gw.check_credentials.return_value = "123456789012"
        gw.create_network.return_value = "vpc-1"
        gw.create_subnet.side_effect = ["subnet-pub1", "subnet-pub2", "subnet-priv1", "subnet-priv2"]
        gw.create_internet_gateway.return_value = "igw-1"
        gw.create_route_table.side_effect = ["rtb-public", "rtb-private"]
        gw.allocate_address.return_value = "eipalloc-1"
        gw.create_nat_gateway.return_value = "nat-1"
        gw.nat_gateway_state.return_value = "available"
        yield gw


def write_ledger(path, entries):
    path.write_text("".join(f"{k}={v}\n" for k, v in entries.items()))


class TestCreateCommand:
    def test_create(self, env, ledger_path, mock_gateway):
        result = CliRunner().invoke(main, ["create"], env=env)

        assert result.exit_code == 0, result.output
        assert "VPC setup completed successfully!" in result.output
        assert "network=vpc-1" in result.output
        assert len(Ledger(ledger_path).records()) == 10

    def test_create_failure_names_resource(self, env, ledger_path, mock_gateway):
        mock_gateway.create_internet_gateway.side_effect = ClientError(
            {"Error": {"Code": "InternetGatewayLimitExceeded", "Message": "limit reached"}},
            "CreateInternetGateway",
        )

        result = CliRunner().invoke(main, ["create"], env=env)

        assert result.exit_code == 1
        assert "internet-gateway" in result.output
        assert "limit reached" in result.output
        assert [r.logical_name for r in Ledger(ledger_path).records()][-1] == "private-subnet-2"

    def test_create_refuses_to_forget_without_confirmation(self, env, ledger_path, mock_gateway):
        write_ledger(ledger_path, {"network": "vpc-old"})

        result = CliRunner().invoke(main, ["create"], env=env, input="n\n")

        assert result.exit_code == 0
        assert "cancelled" in result.output
        assert Ledger(ledger_path).lookup("network") == "vpc-old"
        mock_gateway.create_network.assert_not_called()

    def test_create_resume(self, env, ledger_path, mock_gateway):
        write_ledger(ledger_path, {"network": "vpc-old"})

        result = CliRunner().invoke(main, ["create", "--resume"], env=env)

        assert result.exit_code == 0, result.output
        mock_gateway.create_network.assert_not_called()
        mock_gateway.create_subnet.assert_any_call(
            "vpc-old", "10.0.1.0/24", "us-east-1a", "Public-Subnet-us-east-1a"
        )

    def test_missing_credentials(self, env, mock_gateway):
        mock_gateway.check_credentials.side_effect = NoCredentialsError()

        result = CliRunner().invoke(main, ["create"], env=env)

        assert result.exit_code == 1
        assert "aws configure" in result.output
        mock_gateway.create_network.assert_not_called()

    def test_locked_ledger(self, env, ledger_path, mock_gateway):
        with Ledger(ledger_path).lock():
            result = CliRunner().invoke(main, ["create"], env=env)

        assert result.exit_code == 2
        assert "lock" in result.output

    def test_invalid_setting(self, env, mock_gateway):
        env["VPCCTL_VPC_CIDR"] = "not-a-cidr"

        result = CliRunner().invoke(main, ["create"], env=env)

        assert result.exit_code == 2
        assert "VPCCTL_VPC_CIDR" in result.output


class TestDeleteCommand:
    def test_nothing_to_delete(self, env, mock_gateway):
        result = CliRunner().invoke(main, ["delete", "--yes"], env=env)

        assert result.exit_code == 1
        assert "Nothing to delete" in result.output
        mock_gateway.check_credentials.assert_not_called()

    def test_declined(self, env, ledger_path, mock_gateway):
        write_ledger(ledger_path, {"network": "vpc-1"})

        result = CliRunner().invoke(main, ["delete"], env=env, input="n\n")

        assert result.exit_code == 0
        assert "Deletion cancelled." in result.output
        assert ledger_path.exists()
        mock_gateway.delete_network.assert_not_called()

    def test_confirmed(self, env, ledger_path, mock_gateway):
        write_ledger(ledger_path, {"network": "vpc-1", "public-subnet-1": "subnet-1"})

        result = CliRunner().invoke(main, ["delete"], env=env, input="y\n")

        assert result.exit_code == 0, result.output
        mock_gateway.delete_subnet.assert_called_once_with("subnet-1")
        mock_gateway.delete_network.assert_called_once_with("vpc-1")
        assert not ledger_path.exists()

    def test_failure_keeps_ledger(self, env, ledger_path, mock_gateway):
        write_ledger(ledger_path, {"network": "vpc-1", "public-subnet-1": "subnet-1"})
        mock_gateway.delete_network.side_effect = ClientError(
            {"Error": {"Code": "DependencyViolation", "Message": "has dependencies"}}, "DeleteVpc"
        )

        result = CliRunner().invoke(main, ["delete", "--yes"], env=env)

        assert result.exit_code == 1
        assert "network" in result.output
        assert [r.logical_name for r in Ledger(ledger_path).records()] == ["network"]


class TestStatusCommand:
    def test_no_ledger(self, env):
        result = CliRunner().invoke(main, ["status"], env=env)

        assert result.exit_code == 0
        assert "No VPC resources found" in result.output

    def test_json(self, env, ledger_path):
        write_ledger(ledger_path, {"network": "vpc-1"})

        result = CliRunner().invoke(main, ["status", "--json"], env=env)

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["resources"] == {"network": "vpc-1"}
        assert data["state"] == "idle"


class TestMenu:
    def test_status_then_exit(self, env, ledger_path):
        write_ledger(ledger_path, {"network": "vpc-1"})

        result = CliRunner().invoke(main, ["menu"], env=env, input="3\n4\n")

        assert result.exit_code == 0
        assert "VPC Management Script" in result.output
        assert "network=vpc-1" in result.output
        assert "Goodbye!" in result.output

    def test_invalid_choice(self, env):
        result = CliRunner().invoke(main, ["menu"], env=env, input="9\n4\n")

        assert "Invalid option" in result.output
        assert "Goodbye!" in result.output

    def test_actions(self):
        assert Action("1") == Action.CREATE
        assert Action("4") == Action.EXIT


class TestMetadataCommand:
    @patch("vpcctl.cli.collect_report")
    def test_human_output(self, mock_report, env):
        mock_report.return_value = {
            "instance": {"Instance ID": "i-0abc"},
            "identity": {"Account ID": "123456789012"},
            "iam": {},
            "warnings": ["Unable to get IAM information: 404"],
        }

        result = CliRunner().invoke(main, ["metadata"], env=env)

        assert result.exit_code == 0
        assert "Instance ID: i-0abc" in result.output
        assert "=== IAM Information ===" in result.output
        assert "Unable to get IAM information" in result.output

    @patch("vpcctl.cli.collect_report")
    def test_not_on_ec2(self, mock_report, env):
        mock_report.return_value = {"instance": {}, "identity": {}, "iam": {}, "warnings": []}

        result = CliRunner().invoke(main, ["metadata", "--json"], env=env)

        assert result.exit_code == 1

    @patch("vpcctl.cli.collect_report")
    def test_json_output(self, mock_report, env):
        mock_report.return_value = {
            "instance": {"Instance ID": "i-0abc"},
            "identity": {},
            "iam": {},
            "warnings": [],
        }

        result = CliRunner().invoke(main, ["metadata", "--json"], env=env)

        assert result.exit_code == 0
        assert json.loads(result.output)["instance"] == {"Instance ID": "i-0abc"}
