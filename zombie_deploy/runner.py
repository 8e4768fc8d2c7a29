"""
Deployment Runner

Deploys compiled contracts to one network, strictly one after another:
each transaction is confirmed before the next step starts.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .artifacts import ArtifactDescriptor, ArtifactRegistry
from .config import NetworkProfile
from .errors import ArtifactResolutionError, DeployerError, DeploymentError
from .migrations import Migration
from .records import DeploymentRecord

logger = logging.getLogger(__name__)

DEFAULT_TX_TIMEOUT = 120


class RunState(Enum):
    NOT_RUN = "not_run"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class DeploymentStep:
    """One contract to deploy, at a fixed position in the sequence"""
    contract_name: str
    ordinal: int
    args: Tuple[Any, ...] = field(default=())

    def __str__(self) -> str:
        return f"step {self.ordinal} ({self.contract_name})"


@dataclass(frozen=True)
class DeployedContract:
    contract_name: str
    address: str
    transaction_hash: Optional[str]
    block_number: Optional[int]
    network: str
    ordinal: Optional[int] = None


def build_steps(contract_names: Sequence[str]) -> List[DeploymentStep]:
    """Turn a list of contract names into ordered steps starting at 1"""
    return [DeploymentStep(name, ordinal) for ordinal, name in enumerate(contract_names, start=1)]


class DeploymentRunner:
    """Runs deployment steps or migration scripts against a single network"""

    def __init__(self, network: NetworkProfile, artifacts: ArtifactRegistry,
                 record: Optional[DeploymentRecord] = None, private_key: Optional[str] = None,
                 tx_timeout: int = DEFAULT_TX_TIMEOUT, w3: Optional[Web3] = None):
        self.network = network
        self.artifacts = artifacts
        self.record = record if record is not None else DeploymentRecord()
        self.private_key = private_key
        self.tx_timeout = tx_timeout
        self.state = RunState.NOT_RUN
        self.deployed: List[DeployedContract] = []
        self.steps: List[DeploymentStep] = []
        self._w3 = w3
        self._connected = False
        self._failure: Optional[Exception] = None

    def connect(self) -> Web3:
        """Open (once) the connection to the selected network and check its chain id"""
        if self._connected and self._w3 is not None:
            return self._w3

        w3 = self._w3
        if w3 is None:
            w3 = Web3(Web3.HTTPProvider(self.network.rpc_url, request_kwargs={"timeout": self.tx_timeout}))
        if self.network.poa:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        try:
            connected = w3.is_connected()
            chain_id = w3.eth.chain_id if connected else None
        except (Web3Exception, RequestException, ValueError) as e:
            logger.error(f"Failed to reach {self.network.rpc_url}: {e}")
            raise DeploymentError(f"Could not connect to network '{self.network.name}' at {self.network.rpc_url}: {e}") from e

        if not connected:
            raise DeploymentError(f"Could not connect to network '{self.network.name}' at {self.network.rpc_url}")
        if not self.network.accepts_chain(chain_id):
            raise DeploymentError(
                f"Network '{self.network.name}' expects chain id {self.network.network_id} "
                f"but the node at {self.network.rpc_url} reports {chain_id}"
            )

        logger.info(f"Connected to network '{self.network.name}' at {self.network.rpc_url} (chain id {chain_id})")
        self.record.set_chain_id(self.network.name, chain_id)
        self._w3 = w3
        self._connected = True
        return w3

    def run_steps(self, steps: Sequence[DeploymentStep]) -> List[DeployedContract]:
        """Deploy each step in ordinal order; the first failure aborts the rest"""
        ordered = sorted(steps, key=lambda s: s.ordinal)

        def body():
            for step in ordered:
                self._execute(step)

        self._run(body)
        return list(self.deployed)

    def run_migrations(self, migrations: Sequence[Migration]) -> List[DeployedContract]:
        """Call each migration script's entry point in ordinal order"""
        deployer = Deployer(self)
        ordered = sorted(migrations, key=lambda m: m.ordinal)

        def body():
            for migration in ordered:
                logger.info(f"Running {migration}")
                try:
                    entry = migration.load()
                    entry(deployer, self.artifacts)
                    if self.state is RunState.FAILED:
                        raise self._failure
                except DeployerError as e:
                    if isinstance(e, DeploymentError) and e.step is None:
                        e.step = migration
                    raise
                except Exception as e:
                    raise DeploymentError(f"{migration} failed: {e}") from e
                self.record.mark_migration(self.network.name, migration.ordinal)

        self._run(body)
        return list(self.deployed)

    def deploy(self, contract: Union[str, ArtifactDescriptor], *args,
               overwrite: bool = True) -> DeployedContract:
        """Deploy one contract as the next step of the running sequence"""
        if self.state is RunState.FAILED:
            raise DeploymentError(f"Run has already failed ({self._failure}), no further deploys are allowed")
        if self.state is not RunState.RUNNING:
            raise DeploymentError("deploy() can only be called while a run is in progress")
        artifact = contract if isinstance(contract, ArtifactDescriptor) else None
        name = artifact.contract_name if artifact else contract
        step = DeploymentStep(name, len(self.steps) + 1, tuple(args))
        return self._execute(step, artifact, overwrite=overwrite)

    def _run(self, body):
        if self.state is not RunState.NOT_RUN:
            raise DeploymentError(f"Runner has already been used (state: {self.state.value})")
        self.state = RunState.RUNNING
        try:
            body()
            if self.state is RunState.FAILED:
                raise self._failure
        except Exception as e:
            self.state = RunState.FAILED
            logger.error(f"Deployment to '{self.network.name}' failed: {e}")
            raise
        self.state = RunState.COMPLETED
        logger.info(f"Deployment to '{self.network.name}' completed: {len(self.deployed)} contract(s)")

    def _execute(self, step: DeploymentStep, artifact: Optional[ArtifactDescriptor] = None,
                 overwrite: bool = True) -> DeployedContract:
        self.steps.append(step)
        try:
            return self._execute_step(step, artifact, overwrite)
        except Exception as e:
            # a failed step ends the run even if a migration script catches the error
            self.state = RunState.FAILED
            self._failure = e
            raise

    def _execute_step(self, step: DeploymentStep, artifact: Optional[ArtifactDescriptor],
                      overwrite: bool) -> DeployedContract:
        if not overwrite:
            existing = self._existing(step)
            if existing is not None:
                logger.info(f"{step}: already deployed at {existing.address}, skipping")
                self.deployed.append(existing)
                return existing

        if artifact is None:
            try:
                artifact = self.artifacts.require(step.contract_name)
            except ArtifactResolutionError as e:
                e.step = step
                raise

        expected = len(artifact.constructor_inputs)
        if len(step.args) != expected:
            raise DeploymentError(
                f"constructor expects {expected} argument(s), got {len(step.args)}", step=step
            )

        deployed = self._submit(step, artifact)
        self.deployed.append(deployed)
        self.record.record_contract(self.network.name, deployed)
        return deployed

    def _existing(self, step: DeploymentStep) -> Optional[DeployedContract]:
        entry = self.record.contracts(self.network.name).get(step.contract_name)
        if not entry:
            return None
        return DeployedContract(
            contract_name=step.contract_name,
            address=entry["address"],
            transaction_hash=entry.get("transaction_hash"),
            block_number=entry.get("block_number"),
            network=self.network.name,
            ordinal=step.ordinal,
        )

    def _sender(self, w3: Web3) -> str:
        if self.network.from_address:
            return self.network.from_address
        accounts = w3.eth.accounts
        if not accounts:
            raise DeploymentError("No unlocked account on the node and no PRIVATE_KEY configured")
        return accounts[0]

    def _tx_params(self) -> dict:
        params = {}
        if self.network.gas is not None:
            params['gas'] = self.network.gas
        if self.network.gas_price is not None:
            params['gasPrice'] = self.network.gas_price
        return params

    def _submit(self, step: DeploymentStep, artifact: ArtifactDescriptor) -> DeployedContract:
        w3 = self.connect()
        logger.info(f"{step}: deploying {artifact.contract_name} to '{self.network.name}'")

        try:
            factory = w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
            constructor = factory.constructor(*step.args)
            tx_params = self._tx_params()

            if self.private_key:
                account = w3.eth.account.from_key(self.private_key)
                tx = constructor.build_transaction({
                    **tx_params,
                    'from': account.address,
                    'nonce': w3.eth.get_transaction_count(account.address),
                })
                signed_tx = w3.eth.account.sign_transaction(tx, self.private_key)
                tx_hash = w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            else:
                tx_hash = constructor.transact({**tx_params, 'from': self._sender(w3)})

            tx_hex = Web3.to_hex(tx_hash)
            logger.info(f"{step}: transaction sent {tx_hex}")
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        except DeploymentError as e:
            e.step = step
            raise
        except (Web3Exception, RequestException, ValueError) as e:
            logger.error(f"{step}: transaction rejected: {e}")
            raise DeploymentError(str(e), step=step) from e

        if receipt['status'] != 1:
            raise DeploymentError(f"transaction {tx_hex} reverted in block {receipt['blockNumber']}", step=step)

        address = receipt['contractAddress']
        logger.info(f"{step}: {artifact.contract_name} deployed at {address} (block {receipt['blockNumber']})")
        return DeployedContract(
            contract_name=artifact.contract_name,
            address=address,
            transaction_hash=tx_hex,
            block_number=receipt['blockNumber'],
            network=self.network.name,
            ordinal=step.ordinal,
        )


class Deployer:
    """Handle passed to migration scripts"""

    def __init__(self, runner: DeploymentRunner):
        self._runner = runner

    @property
    def network(self) -> NetworkProfile:
        return self._runner.network

    def deploy(self, contract: Union[str, ArtifactDescriptor], *args,
               overwrite: bool = True) -> DeployedContract:
        return self._runner.deploy(contract, *args, overwrite=overwrite)

    def deployed(self, contract_name: str) -> Optional[DeployedContract]:
        """Latest handle deployed for `contract_name` in this run, if any"""
        for deployed in reversed(self._runner.deployed):
            if deployed.contract_name == contract_name:
                return deployed
        return None
