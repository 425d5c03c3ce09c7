#!/usr/bin/env python3
"""Run one storefront -> HubSpot sync from a checkout.

Usage:
    uv run python scripts/run_sync.py --dry-run
    uv run python scripts/run_sync.py --no-dry-run --company-ids 12,40

Same flags as the installed ``hubsync-sync`` command. Reads configuration
from the environment or the project's .env file.
"""

from __future__ import annotations

import os
import sys

# Ensure project root is on sys.path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

from src.hubsync.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
