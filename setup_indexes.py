#!/usr/bin/env python3
"""
Script to create the MongoDB indexes the marketplace relies on.
Run this once against a fresh database; the API also runs it on startup.
"""
import asyncio
from marketplace.core.logging import setup_logging
from marketplace.db import close_client, ensure_indexes, get_db

async def setup_indexes():
    setup_logging()
    db = await get_db()
    await ensure_indexes(db)
    close_client()
    print(f"✓ Indexes ensured on database '{db.name}'")

if __name__ == "__main__":
    asyncio.run(setup_indexes())
