"""
Changelog: Reference data.
Created: 2026-10-18
"""

from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorDatabase

from changekeeper import changeset

ORDER_STATUSES = ["pending", "paid", "shipped", "cancelled"]


@changeset(id="002-order-statuses", author="platform")
async def order_statuses(db: AsyncIOMotorDatabase) -> None:
    for position, status in enumerate(ORDER_STATUSES):
        await db["order_statuses"].update_one(
            {"_id": status},
            {"$set": {"position": position}},
            upsert=True,
        )


@changeset(id="002-demo-users", author="platform", profiles=["dev", "staging"])
async def demo_users(db: AsyncIOMotorDatabase) -> None:
    await db["users"].update_one(
        {"email": "demo@example.com"},
        {"$setOnInsert": {"name": "Demo User"}},
        upsert=True,
    )


@changeset(id="002-schema-heartbeat", author="platform", run_always=True)
async def schema_heartbeat(db: AsyncIOMotorDatabase) -> None:
    """Stamps the time of the last successful run."""
    await db["schema_info"].update_one(
        {"_id": "changekeeper"},
        {"$set": {"last_run_at": datetime.now(timezone.utc)}},
        upsert=True,
    )
