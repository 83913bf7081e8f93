"""
Database initialization script

Creates every index the API relies on, including the unique
stripeInvoiceId index behind idempotent webhook processing:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from app.core.logging import setup_logging, get_logger
from app.db.indexes import create_indexes
from app.db.mongo import connect_to_mongo, close_mongo_connection, get_database

setup_logging()
logger = get_logger("scripts.init_db")

COLLECTIONS = ("users", "assistants", "phone_numbers", "invoices", "payment_methods", "calls", "clients")


async def main():
    logger.info("=" * 60)
    logger.info("  VoiceDesk Database Setup")
    logger.info("=" * 60)

    await connect_to_mongo()
    try:
        await create_indexes()

        db = get_database()
        logger.info("🔍 Verifying indexes...")
        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            count = await db[name].count_documents({})
            names = ", ".join(i for i in indexes if i != "_id_") or "(none)"
            logger.info(f"  {name}: {count} document(s); indexes: {names}")

        logger.info("✅ Database initialization complete!")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main())
