#!/usr/bin/env python
"""Script to run the task management API server."""
import sys
from pathlib import Path

# Add project directory to Python path
project_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(project_dir))

import uvicorn

from taskboard import config
from taskboard.logging_setup import setup_logging

if __name__ == "__main__":
    setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    uvicorn.run(
        "taskboard.main:app",
        host=config.HOST,
        port=config.PORT,
        reload="--reload" in sys.argv,
        log_config=None,
    )
