#!/usr/bin/env python3
"""
Startup script for the Keeper League Sync backend
"""

import os

import uvicorn

from backend.config import settings

project_root = os.path.dirname(os.path.abspath(__file__))

if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        reload_dirs=[project_root]
    )
