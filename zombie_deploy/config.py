"""
Network and compiler configuration

Reads a truffle-style JSON declaration of target networks and the compiler
pin, plus runtime settings from the environment (.env supported).
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ANY_NETWORK = "*"
MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class NetworkProfile:
    """A named deployment target"""
    name: str
    host: str
    port: int
    network_id: str
    gas: Optional[int] = None
    gas_price: Optional[int] = None
    from_address: Optional[str] = None
    poa: bool = False

    @property
    def rpc_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def accepts_chain(self, chain_id) -> bool:
        """True when the node's chain id is acceptable for this profile"""
        if self.network_id == ANY_NETWORK:
            return True
        return str(chain_id) == self.network_id


@dataclass(frozen=True)
class CompilerSpec:
    """Pinned compiler used to build the artifacts"""
    tool_name: str
    version: str

    def matches(self, artifact_version: Optional[str]) -> bool:
        """
        Compare an artifact's recorded compiler version with the pin.

        Build metadata is ignored, so "0.8.11+commit.d7f03943" matches "0.8.11".
        """
        if not artifact_version:
            return False
        return artifact_version.split("+")[0] == self.version


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data or data[key] is None:
        raise ConfigurationError(f"Missing required field '{key}' in {where}")
    return data[key]


def _optional_int(data: Dict[str, Any], key: str, where: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"Field '{key}' in {where} must be a positive integer, got {value!r}")
    return value


def _optional_str(data: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"Field '{key}' in {where} must be a non-empty string, got {value!r}")
    return value


def _optional_bool(data: Dict[str, Any], key: str, where: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigurationError(f"Field '{key}' in {where} must be true or false, got {value!r}")
    return value


def _unique_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """json object hook that rejects a key declared twice in the same object"""
    result = {}
    for key, value in pairs:
        if key in result:
            raise ConfigurationError(f"'{key}' is declared more than once")
        result[key] = value
    return result


def parse_network(name: str, data: Dict[str, Any]) -> NetworkProfile:
    where = f"network '{name}'"
    if not isinstance(data, dict):
        raise ConfigurationError(f"Declaration of {where} must be a mapping")

    host = _require(data, "host", where)
    if not isinstance(host, str) or not host.strip():
        raise ConfigurationError(f"Field 'host' in {where} must be a non-empty string")

    port = _require(data, "port", where)
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigurationError(f"Field 'port' in {where} must be an integer, got {port!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigurationError(f"Field 'port' in {where} is out of range: {port}")

    network_id = _require(data, "network_id", where)
    if isinstance(network_id, bool) or not isinstance(network_id, (str, int)):
        raise ConfigurationError(f"Field 'network_id' in {where} must be a string or integer")
    network_id = str(network_id).strip()
    if not network_id:
        raise ConfigurationError(f"Field 'network_id' in {where} must not be empty")

    return NetworkProfile(
        name=name,
        host=host,
        port=port,
        network_id=network_id,
        gas=_optional_int(data, "gas", where),
        gas_price=_optional_int(data, "gasPrice", where),
        from_address=_optional_str(data, "from", where),
        poa=_optional_bool(data, "poa", where),
    )


def parse_compilers(data: Dict[str, Any]) -> CompilerSpec:
    if not isinstance(data, dict) or not data:
        raise ConfigurationError("Missing required 'compilers' declaration")
    if len(data) != 1:
        raise ConfigurationError(f"Exactly one compiler must be declared, found {sorted(data)}")

    tool_name, settings = next(iter(data.items()))
    if not isinstance(settings, dict):
        raise ConfigurationError(f"Declaration of compiler '{tool_name}' must be a mapping")
    version = _require(settings, "version", f"compiler '{tool_name}'")
    if not isinstance(version, str) or not version.strip():
        raise ConfigurationError(f"Compiler '{tool_name}' version must be a non-empty string")
    return CompilerSpec(tool_name=tool_name, version=version.strip())


class DeploymentConfig:
    """Validated set of network profiles plus the compiler pin"""

    def __init__(self, networks: Dict[str, NetworkProfile], compiler: CompilerSpec,
                 source: Optional[str] = None):
        self._networks = dict(networks)
        self._compiler = compiler
        self.source = source

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "DeploymentConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")

        networks_data = _require(data, "networks", "configuration")
        if not isinstance(networks_data, dict) or not networks_data:
            raise ConfigurationError("At least one network must be declared")

        networks = {name: parse_network(name, spec) for name, spec in networks_data.items()}
        compiler = parse_compilers(_require(data, "compilers", "configuration"))
        return cls(networks, compiler, source=source)

    @property
    def compiler(self) -> CompilerSpec:
        return self._compiler

    def network_names(self) -> List[str]:
        return list(self._networks)

    def get_network(self, name: str) -> NetworkProfile:
        try:
            return self._networks[name]
        except KeyError:
            declared = ", ".join(self._networks) or "none"
            raise ConfigurationError(f"Network '{name}' is not declared (declared: {declared})") from None


def load_config(path: str) -> DeploymentConfig:
    """Load and validate a JSON configuration file"""
    try:
        with open(path, 'r') as f:
            data = json.load(f, object_pairs_hook=_unique_keys)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file {path} is not valid JSON: {e}") from e
    except ConfigurationError as e:
        raise ConfigurationError(f"Configuration file {path}: {e}") from e

    config = DeploymentConfig.from_dict(data, source=path)
    logger.debug(f"Loaded {len(config.network_names())} network(s) from {path}")
    return config


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"Environment variable {name} must be positive, got {value}")
    return value


@dataclass
class Settings:
    """Runtime settings taken from the environment"""
    config_path: str = "deploy-config.json"
    network: str = "development"
    migrations_dir: str = "migrations"
    build_dir: str = os.path.join("build", "contracts")
    deployment_file: str = "deployment.json"
    private_key: Optional[str] = None
    tx_timeout: int = 120
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        defaults = cls()
        return cls(
            config_path=os.getenv("DEPLOY_CONFIG", defaults.config_path),
            network=os.getenv("DEPLOY_NETWORK", defaults.network),
            migrations_dir=os.getenv("MIGRATIONS_DIR", defaults.migrations_dir),
            build_dir=os.getenv("BUILD_DIR", defaults.build_dir),
            deployment_file=os.getenv("DEPLOYMENT_FILE", defaults.deployment_file),
            private_key=os.getenv("PRIVATE_KEY") or None,
            tx_timeout=_env_int("TX_TIMEOUT", defaults.tx_timeout),
            log_file=os.getenv("DEPLOY_LOG_FILE") or None,
        )
