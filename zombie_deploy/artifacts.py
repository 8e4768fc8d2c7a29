"""
Compiled contract artifacts

Artifacts are produced by an external compile step (truffle build/contracts
or hardhat artifacts/) and looked up here by contract name.
"""

import os
import re
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import CompilerSpec
from .errors import ArtifactResolutionError

logger = logging.getLogger(__name__)

LIBRARY_PLACEHOLDER = re.compile(r"__\$[0-9a-fA-F]{34}\$__")


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Bytecode plus interface metadata for one compiled contract"""
    contract_name: str
    abi: List[Dict[str, Any]] = field(hash=False)
    bytecode: str
    compiler_version: Optional[str] = None
    source_path: Optional[str] = None

    @property
    def is_deployable(self) -> bool:
        return bool(self.bytecode) and self.bytecode not in ("0x", "0x0") and not self.unlinked_libraries

    @property
    def unlinked_libraries(self) -> List[str]:
        return sorted(set(LIBRARY_PLACEHOLDER.findall(self.bytecode or "")))

    @property
    def constructor_inputs(self) -> List[Dict[str, Any]]:
        ctor = next((item for item in self.abi if item.get("type") == "constructor"), None)
        return ctor.get("inputs", []) if ctor else []


def parse_artifact(data: Dict[str, Any], fallback_name: str, source: Optional[str] = None) -> ArtifactDescriptor:
    """Build a descriptor from a truffle or hardhat artifact document"""
    compiler = data.get("compiler") or {}
    compiler_version = compiler.get("version") if isinstance(compiler, dict) else None
    if compiler_version is None:
        compiler_version = data.get("solcVersion")

    bytecode = data.get("bytecode") or ""
    if isinstance(bytecode, dict):
        # solc standard-json shape: {"object": "..."}
        bytecode = bytecode.get("object", "")
    if bytecode and not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    return ArtifactDescriptor(
        contract_name=data.get("contractName") or fallback_name,
        abi=list(data.get("abi", [])),
        bytecode=bytecode,
        compiler_version=compiler_version,
        source_path=data.get("sourcePath") or data.get("sourceName") or source,
    )


class ArtifactRegistry:
    """Mapping from contract name to its compiled artifact; lookups fail closed"""

    def __init__(self, artifacts: Optional[List[ArtifactDescriptor]] = None):
        self._artifacts: Dict[str, ArtifactDescriptor] = {}
        for artifact in artifacts or []:
            self.add(artifact)

    @classmethod
    def from_directory(cls, path: str) -> "ArtifactRegistry":
        if not os.path.isdir(path):
            raise ArtifactResolutionError(f"Artifact directory not found: {path}. Compile the contracts first.")

        registry = cls()
        for filename in sorted(os.listdir(path)):
            if not filename.endswith(".json"):
                continue
            file_path = os.path.join(path, filename)
            try:
                with open(file_path, 'r') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ArtifactResolutionError(f"Artifact {file_path} is not valid JSON: {e}") from e

            if not isinstance(data, dict) or "abi" not in data:
                logger.debug(f"Skipping {file_path}: not a contract artifact")
                continue
            registry.add(parse_artifact(data, os.path.splitext(filename)[0], source=file_path))

        logger.info(f"Loaded {len(registry)} artifact(s) from {path}")
        return registry

    def add(self, artifact: ArtifactDescriptor):
        if artifact.contract_name in self._artifacts:
            logger.warning(f"Artifact {artifact.contract_name} declared more than once, keeping the last one")
        self._artifacts[artifact.contract_name] = artifact

    def names(self) -> List[str]:
        return sorted(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, name) -> bool:
        return name in self._artifacts

    def require(self, name: str) -> ArtifactDescriptor:
        """Return the deployable artifact called `name` or raise ArtifactResolutionError"""
        artifact = self._artifacts.get(name)
        if artifact is None:
            raise ArtifactResolutionError(f"Could not find artifact for contract '{name}'")
        if artifact.unlinked_libraries:
            raise ArtifactResolutionError(
                f"Contract '{name}' has unlinked libraries: {', '.join(artifact.unlinked_libraries)}"
            )
        if not artifact.is_deployable:
            raise ArtifactResolutionError(f"Contract '{name}' has no bytecode (interface or abstract contract?)")
        return artifact

    def check_compiler(self, spec: CompilerSpec) -> List[str]:
        """Warn about artifacts built with another compiler version; returns their names"""
        mismatched = []
        for name, artifact in sorted(self._artifacts.items()):
            if artifact.compiler_version is None:
                continue
            if not spec.matches(artifact.compiler_version):
                logger.warning(
                    f"Artifact {name} was compiled with {spec.tool_name} {artifact.compiler_version}, "
                    f"configuration pins {spec.version}"
                )
                mismatched.append(name)
        return mismatched
