"""
Exception hierarchy for zombie-deploy.
"""

from typing import Optional


class DeployerError(Exception):
    """Base class for every error raised by zombie-deploy"""


class ConfigurationError(DeployerError):
    """Malformed or missing network/compiler declaration"""


class DeploymentError(DeployerError):
    """A deployment step could not be completed"""

    def __init__(self, message: str, step: Optional[object] = None):
        super().__init__(message)
        self.step = step

    def __str__(self) -> str:
        message = super().__str__()
        if self.step is None:
            return message
        return f"{self.step} failed: {message}"


class ArtifactResolutionError(DeploymentError):
    """Named contract not found among the compiled artifacts"""
