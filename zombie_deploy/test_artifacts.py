#!/usr/bin/env python3
"""
Tests for artifact loading and lookup
"""

import json
import logging

import pytest

from zombie_deploy.artifacts import ArtifactDescriptor, ArtifactRegistry, parse_artifact
from zombie_deploy.config import CompilerSpec
from zombie_deploy.errors import ArtifactResolutionError, DeploymentError

TRUFFLE_ARTIFACT = {
    "contractName": "ZombieFactory",
    "abi": [{"type": "function", "name": "createRandomZombie", "inputs": [{"name": "_name", "type": "string"}]}],
    "bytecode": "0x608060405234801561001057600080fd5b50",
    "compiler": {"name": "solc", "version": "0.8.11+commit.d7f03943.Emscripten.clang"},
    "sourcePath": "contracts/ZombieFactory.sol",
}


def write_artifact(directory, filename, data):
    (directory / filename).write_text(json.dumps(data))


class TestParseArtifact:
    def test_truffle_layout(self):
        artifact = parse_artifact(TRUFFLE_ARTIFACT, "fallback")
        assert artifact.contract_name == "ZombieFactory"
        assert artifact.compiler_version.startswith("0.8.11")
        assert artifact.source_path == "contracts/ZombieFactory.sol"
        assert artifact.is_deployable

    def test_hardhat_layout_without_prefix(self):
        artifact = parse_artifact({"abi": [], "bytecode": "6080", "sourceName": "contracts/Zombie.sol"}, "Zombie")
        assert artifact.contract_name == "Zombie"
        assert artifact.bytecode == "0x6080"
        assert artifact.compiler_version is None

    def test_constructor_inputs(self):
        abi = [{"type": "constructor", "inputs": [{"name": "owner", "type": "address"}]}]
        artifact = ArtifactDescriptor("Owned", abi, "0x6080")
        assert artifact.constructor_inputs == [{"name": "owner", "type": "address"}]


class TestArtifactRegistry:
    """Test class for ArtifactRegistry"""

    def setup_method(self):
        self.registry = ArtifactRegistry([
            ArtifactDescriptor("ZombieFactory", [], "0x6080"),
            ArtifactDescriptor("Zombie", [], "0x6081"),
            ArtifactDescriptor("IZombie", [], "0x"),
            ArtifactDescriptor("Linked", [], "0x60__$0123456789abcdef0123456789abcdef01$__00"),
        ])

    def test_require_known_contract(self):
        assert self.registry.require("ZombieFactory").bytecode == "0x6080"

    def test_require_unknown_contract_fails_closed(self):
        with pytest.raises(ArtifactResolutionError, match="Unknown"):
            self.registry.require("Unknown")

    def test_resolution_error_is_a_deployment_error(self):
        with pytest.raises(DeploymentError):
            self.registry.require("Unknown")

    def test_interface_is_not_deployable(self):
        with pytest.raises(ArtifactResolutionError, match="no bytecode"):
            self.registry.require("IZombie")

    def test_unlinked_library_is_not_deployable(self):
        with pytest.raises(ArtifactResolutionError, match="unlinked"):
            self.registry.require("Linked")

    def test_names_and_membership(self):
        assert "Zombie" in self.registry
        assert "Unknown" not in self.registry
        assert len(self.registry) == 4
        assert self.registry.names() == ["IZombie", "Linked", "Zombie", "ZombieFactory"]


class TestFromDirectory:
    def test_loads_artifacts_and_skips_other_json(self, tmp_path):
        write_artifact(tmp_path, "ZombieFactory.json", TRUFFLE_ARTIFACT)
        write_artifact(tmp_path, "Zombie.json", {**TRUFFLE_ARTIFACT, "contractName": "Zombie"})
        write_artifact(tmp_path, "_index.json", {"contracts": ["ZombieFactory"]})
        (tmp_path / "notes.txt").write_text("not an artifact")

        registry = ArtifactRegistry.from_directory(str(tmp_path))
        assert registry.names() == ["Zombie", "ZombieFactory"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ArtifactResolutionError, match="Compile the contracts first"):
            ArtifactRegistry.from_directory(str(tmp_path / "build"))

    def test_malformed_artifact(self, tmp_path):
        (tmp_path / "Broken.json").write_text("{")
        with pytest.raises(ArtifactResolutionError, match="Broken.json"):
            ArtifactRegistry.from_directory(str(tmp_path))


class TestCheckCompiler:
    def test_warns_on_version_mismatch(self, caplog):
        registry = ArtifactRegistry([
            parse_artifact(TRUFFLE_ARTIFACT, "ZombieFactory"),
            parse_artifact({**TRUFFLE_ARTIFACT, "contractName": "Zombie",
                            "compiler": {"name": "solc", "version": "0.8.12+commit.f00d7308"}}, "Zombie"),
            ArtifactDescriptor("NoMetadata", [], "0x6080"),
        ])

        with caplog.at_level(logging.WARNING, logger="zombie_deploy.artifacts"):
            mismatched = registry.check_compiler(CompilerSpec("solc", "0.8.11"))

        assert mismatched == ["Zombie"]
        assert "0.8.12" in caplog.text


if __name__ == "__main__":
    pytest.main([__file__])
