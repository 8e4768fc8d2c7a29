"""Tests for the zombie-deploy CLI."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from zombie_deploy.cli import app
from zombie_deploy.runner import DeploymentRunner

runner = CliRunner()

CONFIG = {
    "networks": {"development": {"host": "127.0.0.1", "port": 7545, "network_id": "*"}},
    "compilers": {"solc": {"version": "0.8.11"}},
}


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A project directory with config, two migrations and compiled artifacts"""
    (tmp_path / "deploy-config.json").write_text(json.dumps(CONFIG))

    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "1_deploy_zombie_factory.py").write_text(
        "def migrate(deployer, artifacts):\n    deployer.deploy(artifacts.require('ZombieFactory'))\n"
    )
    (migrations / "2_deploy_zombie.py").write_text(
        "def migrate(deployer, artifacts):\n    deployer.deploy(artifacts.require('Zombie'))\n"
    )

    build = tmp_path / "build" / "contracts"
    build.mkdir(parents=True)
    for name, code in [("ZombieFactory", "0xfac7"), ("Zombie", "0x2b1e")]:
        (build / f"{name}.json").write_text(json.dumps({
            "contractName": name,
            "abi": [],
            "bytecode": code,
            "compiler": {"name": "solc", "version": "0.8.11+commit.d7f03943"},
        }))

    monkeypatch.chdir(tmp_path)
    # keep rich from wrapping addresses and error lines
    monkeypatch.setenv("COLUMNS", "200")
    for name in ["DEPLOY_CONFIG", "DEPLOY_NETWORK", "MIGRATIONS_DIR", "BUILD_DIR",
                 "DEPLOYMENT_FILE", "PRIVATE_KEY", "TX_TIMEOUT", "DEPLOY_LOG_FILE"]:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def fake_w3():
    w3 = MagicMock()
    w3.eth.accounts = ["0x" + "de" * 20]
    receipts = iter([
        {"status": 1, "contractAddress": "0x" + "11" * 20, "blockNumber": 1},
        {"status": 1, "contractAddress": "0x" + "22" * 20, "blockNumber": 2},
    ])
    w3.eth.contract.return_value.constructor.return_value.transact.return_value = b"\x01" * 32
    w3.eth.wait_for_transaction_receipt.side_effect = lambda tx_hash, timeout: next(receipts)
    return w3


class TestMigrateCommand:
    """Tests for zombie-deploy migrate"""

    def test_deploys_in_order_and_records(self, project):
        with patch.object(DeploymentRunner, "connect", return_value=fake_w3()):
            result = runner.invoke(app, ["migrate", "--network", "development"])

        assert result.exit_code == 0, result.stdout
        assert "ZombieFactory" in result.stdout

        record = json.loads((project / "deployment.json").read_text())
        network = record["networks"]["development"]
        assert network["contracts"]["ZombieFactory"]["address"] == "0x" + "11" * 20
        assert network["contracts"]["Zombie"]["address"] == "0x" + "22" * 20
        assert network["last_completed_migration"] == 2

    def test_dry_run_does_not_connect(self, project):
        with patch.object(DeploymentRunner, "connect") as connect:
            result = runner.invoke(app, ["migrate", "--dry-run"])

        assert result.exit_code == 0
        assert "deploy_zombie_factory" in result.stdout
        connect.assert_not_called()
        assert not (project / "deployment.json").exists()

    def test_migration_range(self, project):
        with patch.object(DeploymentRunner, "connect", return_value=fake_w3()):
            result = runner.invoke(app, ["migrate", "--from", "2"])

        assert result.exit_code == 0, result.stdout
        contracts = json.loads((project / "deployment.json").read_text())["networks"]["development"]["contracts"]
        assert list(contracts) == ["Zombie"]

    def test_undeclared_network(self, project):
        result = runner.invoke(app, ["migrate", "--network", "mainnet"])
        assert result.exit_code == 1
        assert "not declared" in result.stdout

    def test_unknown_artifact(self, project):
        (project / "migrations" / "3_deploy_unknown.py").write_text(
            "def migrate(deployer, artifacts):\n    deployer.deploy(artifacts.require('Unknown'))\n"
        )
        with patch.object(DeploymentRunner, "connect", return_value=fake_w3()):
            result = runner.invoke(app, ["migrate"])

        assert result.exit_code == 1
        assert "Unknown" in result.stdout
        assert "migration 3 (deploy_unknown)" in result.stdout
        record = json.loads((project / "deployment.json").read_text())
        assert record["networks"]["development"]["last_completed_migration"] == 2


class TestNetworksCommand:
    def test_lists_networks(self, project):
        result = runner.invoke(app, ["networks"])
        assert result.exit_code == 0
        assert "development" in result.stdout
        assert "7545" in result.stdout

    def test_lists_recorded_addresses(self, project):
        address = "0x" + "ab" * 20
        (project / "deployment.json").write_text(json.dumps({
            "networks": {"development": {"contracts": {"ZombieFactory": {"address": address}}}}
        }))
        result = runner.invoke(app, ["networks"])
        assert result.exit_code == 0
        assert address in result.stdout

    def test_record_without_address(self, project):
        (project / "deployment.json").write_text(json.dumps({
            "networks": {"development": {"contracts": {"ZombieFactory": {"block_number": 3}}}}
        }))
        result = runner.invoke(app, ["networks"])
        assert result.exit_code == 1
        assert "no address" in result.stdout

    def test_missing_config(self, project):
        result = runner.invoke(app, ["networks", "--config", "missing.json"])
        assert result.exit_code == 1
        assert "not found" in result.stdout
