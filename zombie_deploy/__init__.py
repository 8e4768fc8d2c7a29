"""
zombie-deploy
=============

Deployment tooling for the CryptoZombie contracts:
- config: network profiles and the compiler pin
- artifacts: compiled contract lookup by name
- migrations: numbered migration scripts
- runner: sequential deployment to one network
"""

from .artifacts import ArtifactDescriptor, ArtifactRegistry
from .config import CompilerSpec, DeploymentConfig, NetworkProfile, Settings, load_config
from .errors import ArtifactResolutionError, ConfigurationError, DeployerError, DeploymentError
from .migrations import Migration, discover_migrations
from .records import DeploymentRecord
from .runner import DeployedContract, Deployer, DeploymentRunner, DeploymentStep, RunState, build_steps

__version__ = "0.1.0"

__all__ = [
    'ArtifactDescriptor', 'ArtifactRegistry',
    'CompilerSpec', 'DeploymentConfig', 'NetworkProfile', 'Settings', 'load_config',
    'ArtifactResolutionError', 'ConfigurationError', 'DeployerError', 'DeploymentError',
    'Migration', 'discover_migrations',
    'DeploymentRecord',
    'DeployedContract', 'Deployer', 'DeploymentRunner', 'DeploymentStep', 'RunState', 'build_steps',
]
