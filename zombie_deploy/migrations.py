"""
Migration scripts

A migration is a Python file named ``<ordinal>_<description>.py`` in the
migrations directory that exposes ``migrate(deployer, artifacts)``.
Migrations run in numeric ordinal order.
"""

import os
import re
import logging
import importlib.util
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MIGRATION_FILE = re.compile(r"^(\d+)_(\w+)\.py$")
ENTRY_POINT = "migrate"


@dataclass(frozen=True)
class Migration:
    ordinal: int
    name: str
    path: str

    def __str__(self) -> str:
        return f"migration {self.ordinal} ({self.name})"

    def load(self) -> Callable:
        """Import the script and return its entry point"""
        spec = importlib.util.spec_from_file_location(f"_migration_{self.ordinal}_{self.name}", self.path)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Cannot load {self} from {self.path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        entry = getattr(module, ENTRY_POINT, None)
        if not callable(entry):
            raise ConfigurationError(f"{self.path} does not define a callable '{ENTRY_POINT}(deployer, artifacts)'")
        return entry


def discover_migrations(directory: str, start: Optional[int] = None,
                        end: Optional[int] = None) -> List[Migration]:
    """
    Find migration scripts in `directory`, sorted by ordinal.

    Args:
        directory: Folder holding the numbered scripts
        start: Lowest ordinal to include (inclusive)
        end: Highest ordinal to include (inclusive)
    """
    if not os.path.isdir(directory):
        raise ConfigurationError(f"Migrations directory not found: {directory}")

    migrations = {}
    for filename in os.listdir(directory):
        match = MIGRATION_FILE.match(filename)
        if not match:
            continue
        ordinal = int(match.group(1))
        if ordinal in migrations:
            raise ConfigurationError(
                f"Duplicate migration number {ordinal}: {os.path.basename(migrations[ordinal].path)} and {filename}"
            )
        migrations[ordinal] = Migration(ordinal, match.group(2), os.path.join(directory, filename))

    selected = [
        migrations[ordinal] for ordinal in sorted(migrations)
        if (start is None or ordinal >= start) and (end is None or ordinal <= end)
    ]
    logger.debug(f"Discovered {len(migrations)} migration(s) in {directory}, {len(selected)} selected")
    return selected
