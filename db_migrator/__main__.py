"""Allow running the migrator with ``python -m db_migrator``."""

import sys

from .cli import main


sys.exit(main())
