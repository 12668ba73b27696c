#!/usr/bin/env python3
"""
Core Module

Shared infrastructure for the marketplace services.

COMPONENTS:
    - config/: dataclass configuration loaded from environment (python-dotenv)
    - logger.py: process-wide logging setup
    - postgres_client.py: asyncpg pool wrapper with transactions
    - nats_client.py: NATS event bus for domain events
    - auth_dependencies.py: FastAPI caller identity dependencies
"""

__version__ = "1.0.0"
