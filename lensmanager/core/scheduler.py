from apscheduler.schedulers.asyncio import AsyncIOScheduler
from lensmanager.core.db import AsyncSessionLocal

from lensmanager.services.bookings.confirmation_expiry_service import clear_expired_confirmation_tokens

scheduler = AsyncIOScheduler()

@scheduler.scheduled_job("cron", hour=0, minute=5)  # daily at 00:05
async def expire_confirmation_tokens_job():
    async with AsyncSessionLocal() as db:
        await clear_expired_confirmation_tokens(db)
