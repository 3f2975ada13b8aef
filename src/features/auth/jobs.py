"""Background retention sweeps for passcodes and refresh tokens."""

import asyncio
import logging

from src.config.settings import settings
from src.database.client import get_session
from src.features.otp.service import OtpService
from src.features.sms.dependencies import get_sms_router

from .token_service import TokenService

logger = logging.getLogger(__name__)


async def run_cleanup_once() -> tuple[int, int]:
    """Delete expired passcodes and refresh tokens.

    Returns:
        Tuple of (deleted passcodes, deleted refresh tokens)

    """
    async with get_session() as session:
        otp_deleted = await OtpService(session, get_sms_router()).cleanup_expired()
        tokens_deleted = await TokenService.cleanup_expired(session)
    return otp_deleted, tokens_deleted


async def run_cleanup_loop(interval_minutes: int | None = None) -> None:
    """Run the retention sweeps until cancelled."""
    interval = (interval_minutes or settings.cleanup_interval_minutes) * 60
    logger.info(f"Cleanup job started (every {interval}s)")

    while True:
        await asyncio.sleep(interval)
        try:
            otp_deleted, tokens_deleted = await run_cleanup_once()
            logger.info(f"Cleanup finished: {otp_deleted} OTPs, {tokens_deleted} refresh tokens removed")
        except Exception:
            logger.exception("Cleanup job failed")
