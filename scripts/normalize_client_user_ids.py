"""
Client userId normalization

Older checkout code stored clients.userId as a hex string or as an
extended-JSON {"$oid": hex} object. This rewrites both forms to a real
ObjectId so plain equality queries find every client document.

    python scripts/normalize_client_user_ids.py --dry-run
    python scripts/normalize_client_user_ids.py
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
import logging

from utils.id_utils import to_object_id

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

MONGODB_URL = os.getenv("MONGODB_URL")
MONGODB_DB_NAME = os.getenv("MONGODB_DB_NAME")


async def normalize(clients, dry_run: bool) -> dict:
    """
    Rewrites legacy userId values on the given collection.

    Returns:
        Counts of scanned, converted and unparseable documents
    """
    counts = {"scanned": 0, "converted": 0, "invalid": 0}
    legacy = {"$or": [{"userId": {"$type": "string"}}, {"userId.$oid": {"$exists": True}}]}

    async for client in clients.find(legacy):
        counts["scanned"] += 1
        oid = to_object_id(client.get("userId"))
        if not isinstance(oid, ObjectId):
            counts["invalid"] += 1
            logger.warning(f"  ⚠️ {client['_id']}: unparseable userId {client.get('userId')!r}")
            continue

        logger.info(f"  {client['_id']}: {client.get('userId')!r} -> ObjectId('{oid}')")
        if not dry_run:
            await clients.update_one({"_id": client["_id"]}, {"$set": {"userId": oid}})
        counts["converted"] += 1

    return counts


async def main():
    parser = argparse.ArgumentParser(description="Normalize clients.userId to ObjectId")
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing")
    args = parser.parse_args()

    if not MONGODB_URL or not MONGODB_DB_NAME:
        raise ValueError("❌ MONGODB_URL and MONGODB_DB_NAME must be set in .env file")

    client = AsyncIOMotorClient(MONGODB_URL)
    try:
        await client.admin.command("ping")
        logger.info(f"🔌 Connected to {MONGODB_DB_NAME}{' (dry run)' if args.dry_run else ''}")

        counts = await normalize(client[MONGODB_DB_NAME].clients, args.dry_run)

        verb = "Would convert" if args.dry_run else "Converted"
        logger.info(
            f"📊 Scanned {counts['scanned']}, {verb.lower()} {counts['converted']}, "
            f"skipped {counts['invalid']} invalid"
        )
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
