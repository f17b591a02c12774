"""Run alembic migrations without the alembic CLI.

Usage:
    python scripts/migrate.py upgrade [revision]
    python scripts/migrate.py downgrade [revision]
    python scripts/migrate.py current
"""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from loguru import logger

ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_INI = ROOT / "alembic.ini"

USAGE = "Usage: python scripts/migrate.py <upgrade|downgrade|current> [revision]"


def get_config() -> Config:
    cfg = Config(str(ALEMBIC_INI))
    # Absolute so the script works from any working directory
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    return cfg


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        logger.error(USAGE)
        return 2

    operation, revision = argv[0], (argv[1] if len(argv) > 1 else None)
    cfg = get_config()

    if operation == "upgrade":
        target = revision or "head"
        logger.info(f"Upgrading schema to {target}")
        command.upgrade(cfg, target)
    elif operation == "downgrade":
        target = revision or "-1"
        logger.info(f"Downgrading schema to {target}")
        command.downgrade(cfg, target)
    elif operation == "current":
        command.current(cfg, verbose=True)
    else:
        logger.error(f"Unknown operation '{operation}'. {USAGE}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
