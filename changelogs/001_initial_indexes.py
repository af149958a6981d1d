"""
Changelog: Initial indexes.
Created: 2026-10-18

Creates the indexes every environment needs on first deploy.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from changekeeper import changeset


@changeset(id="001-users-email-index", author="platform", order=1)
async def users_email_index(db: AsyncIOMotorDatabase) -> None:
    """Unique email lookup for users."""
    await db["users"].create_index(
        [("email", 1)],
        name="idx_email",
        unique=True,
    )


@changeset(id="001-orders-user-created-index", author="platform", order=2)
async def orders_user_created_index(db: AsyncIOMotorDatabase) -> None:
    """Compound index for a user's orders sorted by date."""
    await db["orders"].create_index(
        [("user_id", 1), ("created_at", -1)],
        name="idx_user_created",
    )
