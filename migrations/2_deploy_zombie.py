def migrate(deployer, artifacts):
    deployer.deploy(artifacts.require("Zombie"))
