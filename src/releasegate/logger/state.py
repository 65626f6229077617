from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

INITIALIZED: bool = False
RUN_ID: Optional[str] = None
LOG_DIR: Optional[Path] = None
LOG_FILE_PATH: Optional[Path] = None

# Handlers init_logging attached to root; anything else on root is left alone
FILE_HANDLER: Optional[logging.FileHandler] = None
HANDLERS: List[logging.Handler] = []
