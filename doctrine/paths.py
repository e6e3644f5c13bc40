"""
Path configuration for the Doctrine Index project.
"""

import os
from pathlib import Path
from typing import Optional, Union

from .config import DB_ENV_VAR

# Project root is one level up from doctrine/
PROJECT_ROOT = Path(__file__).parent.parent
DB_PATH = PROJECT_ROOT / "doctrine.sqlite"
PACKAGE_DIR = Path(__file__).parent
SCHEMA_DIR = PACKAGE_DIR / "schema"
DATA_DIR = PACKAGE_DIR / "data"


def resolve_db_path(db_arg: Optional[Union[str, Path]] = None) -> Path:
    """
    Resolve the database path.

    Order: explicit argument, then the DOCTRINE_DB environment variable,
    then doctrine.sqlite at the project root.
    """
    if db_arg:
        return Path(db_arg)
    env = os.getenv(DB_ENV_VAR, "")
    if env:
        return Path(env)
    return DB_PATH

