"""
backend/matchdesk/database.py

Purpose:
    MongoDB connection bootstrap and index management for the dataset cache,
    predictions and tickets.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - matchdesk.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING

from matchdesk.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("matchdesk.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=1,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()
    logger.info("Connected to MongoDB database %s", settings.MONGO_DB)


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent."""

    # ---- Dataset cache: one document per (sport, date), _id = "sport:date" ----
    await db.sport_datasets.create_index([("sport", ASCENDING), ("date", ASCENDING)], unique=True)

    # ---- Predictions ----
    # Correction sweep: pending + kickoff in the past + attempts below the cap
    await db.predictions.create_index([
        ("status", ASCENDING),
        ("match_start", ASCENDING),
        ("correction_metadata.attempts", ASCENDING),
    ])
    await db.predictions.create_index("ticket_id")
    await db.predictions.create_index(
        [("ticket_id", ASCENDING), ("match_data.id", ASCENDING), ("event.id", ASCENDING)],
        unique=True,
    )

    # ---- Tickets ----
    await db.tickets.create_index("closing_at")
