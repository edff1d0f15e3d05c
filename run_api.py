#!/usr/bin/env python3
"""
Run script for the Healthcare Claims Ingestion API.

Usage:
    python run_api.py

Settings come from the environment or a .env file (see src/utils/config.py),
e.g. STORAGE_BACKEND=memory, SQLITE_PATH=data/claims.db, PORT=3000.
"""

import logging
import os
import sys

# Suppress noisy debug output from third-party libraries
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the API server."""
    import uvicorn
    from src.utils.config import settings

    print("=" * 60)
    print("Healthcare Claims Ingestion API")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"Storage: {settings.storage_backend} (table {settings.claims_table_name})")
    if settings.storage_backend == "sqlite":
        print(f"Database: {settings.sqlite_path}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Ingest: POST http://{settings.host}:{settings.port}/claims (multipart field 'file')")
    print(f"  - List:   GET  http://{settings.host}:{settings.port}/claims?memberId=&startDate=&endDate=")
    print(f"  - Get:    GET  http://{settings.host}:{settings.port}/claims/{{claim_id}}")
    print()

    uvicorn.run(
        "src.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
