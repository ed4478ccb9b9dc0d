#!/usr/bin/env python3
"""
Script to run the Book Tracker API server.
"""

import sys
from pathlib import Path

import uvicorn

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import config as app_config
from utilities.logger import setup_logging


def main():
    """Run the API server."""
    setup_logging(
        log_level=app_config.log_level,
        log_format=app_config.log_format,
        log_file=app_config.get_log_file_path(),
        debug=app_config.debug
    )

    print("🚀 Starting Book Tracker API Server")
    print(f"📡 Host: {config.host}")
    print(f"🔌 Port: {config.port}")
    print(f"🌐 Environment: {config.environment}")
    print(f"📚 Database: {app_config.mongodb_database}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=False
    )


if __name__ == "__main__":
    main()
