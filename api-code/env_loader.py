from __future__ import annotations

import logging
import os
from pathlib import Path


logger = logging.getLogger("ledger.env")


def load_local_env(env_path: Path | str = Path(".env"), *, override: bool = False) -> int:
    """Load key=value pairs from a local .env file.

    Variables already present in the process environment win unless
    ``override`` is set. Returns the number of variables applied.
    """
    path = Path(env_path)
    if not path.exists():
        return 0

    applied = 0
    for number, raw_line in enumerate(path.read_text().splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if "=" not in line:
            logger.warning("Skipping malformed .env line %d in %s", number, path)
            continue

        key, value = line.split("=", 1)
        clean_key = key.strip()
        if not clean_key:
            logger.warning("Skipping .env line %d with empty key in %s", number, path)
            continue
        if clean_key in os.environ and not override:
            continue
        os.environ[clean_key] = value.strip().strip('"').strip("'")
        applied += 1
    return applied
