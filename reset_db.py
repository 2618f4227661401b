import asyncio
import os
import sys

# Add backend/ to PYTHONPATH so orderledger.* imports from a plain checkout
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from orderledger.core.database import close_db, create_tables


async def reset():
    print("Connecting to the database, dropping tables...")
    await create_tables(drop_first=True)
    print("Tables recreated.")
    await close_db()
    print("Database reset complete!")


if __name__ == "__main__":
    asyncio.run(reset())
