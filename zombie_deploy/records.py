"""
Deployment record (deployment.json)

Keeps the addresses produced by each run, per network, so that later scripts
and off-chain tools can find the deployed contracts.
"""

import os
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def validate_record(data: Dict[str, Any], path: str):
    """Every recorded contract must carry an address"""
    networks = data.get("networks", {})
    if not isinstance(networks, dict):
        raise ConfigurationError(f"Deployment record {path}: 'networks' must be an object")
    for network, entry in networks.items():
        contracts = entry.get("contracts", {}) if isinstance(entry, dict) else None
        if not isinstance(contracts, dict):
            raise ConfigurationError(f"Deployment record {path}: network '{network}' is malformed")
        for name, contract in contracts.items():
            if not isinstance(contract, dict) or not isinstance(contract.get("address"), str):
                raise ConfigurationError(
                    f"Deployment record {path}: contract '{name}' on '{network}' has no address"
                )


class DeploymentRecord:
    def __init__(self, path: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.path = path
        self.data: Dict[str, Any] = data if data is not None else {"networks": {}}
        self.data.setdefault("networks", {})

    @classmethod
    def load(cls, path: str) -> "DeploymentRecord":
        """Load a record file; a missing file gives an empty record"""
        if not os.path.exists(path):
            return cls(path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Deployment record {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Deployment record {path} must contain a JSON object")
        validate_record(data, path)
        return cls(path, data)

    def save(self):
        if self.path is None:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w') as f:
            json.dump(self.data, f, indent=2)
        os.replace(tmp_path, self.path)

    def _network(self, network: str) -> Dict[str, Any]:
        entry = self.data["networks"].setdefault(network, {})
        entry.setdefault("contracts", {})
        return entry

    def set_chain_id(self, network: str, chain_id: int):
        self._network(network)["chain_id"] = chain_id

    def record_contract(self, network: str, deployed) -> None:
        self._network(network)["contracts"][deployed.contract_name] = {
            "address": deployed.address,
            "transaction_hash": deployed.transaction_hash,
            "block_number": deployed.block_number,
            "deployed_at": datetime.now(timezone.utc).isoformat(),
        }
        self.save()

    def mark_migration(self, network: str, ordinal: int):
        self._network(network)["last_completed_migration"] = ordinal
        self.save()

    def contracts(self, network: str) -> Dict[str, Dict[str, Any]]:
        return dict(self.data["networks"].get(network, {}).get("contracts", {}))

    def address_of(self, network: str, contract_name: str) -> Optional[str]:
        entry = self.contracts(network).get(contract_name)
        return entry["address"] if entry else None

    def last_completed_migration(self, network: str) -> Optional[int]:
        return self.data["networks"].get(network, {}).get("last_completed_migration")
