"""
Deploys ZombieFactory.

Artifacts are looked up by contract name, not by file name.
"""


def migrate(deployer, artifacts):
    deployer.deploy(artifacts.require("ZombieFactory"))
