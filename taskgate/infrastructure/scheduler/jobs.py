from datetime import datetime, timedelta, timezone

from taskgate.core.config import scheduler_logger
from taskgate.core.db import Database
from taskgate.core.db.crud import OTPChallengeDB

otp_challenge_db = OTPChallengeDB()


async def cleanup_otp_challenges(
    database: Database,
    retention_seconds: int = 3600,
    now: datetime | None = None,
) -> tuple[int, int]:
    """
    Periodic task that expires and purges OTP challenges.

    Pending challenges past their expiry are flipped to EXPIRED. Challenges
    that expired more than ``retention_seconds`` ago are deleted; the
    retention must cover the issuance rate window so that the per-user
    issuance count stays accurate.

    Returns:
        tuple[int, int]: The number of challenges expired and purged.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=retention_seconds)

    async with database.session_factory.begin() as session:
        scheduler_logger.info(
            f"Starting OTP challenge cleanup (purge cutoff: {cutoff})"
        )
        expired = await otp_challenge_db.expire_stale(session, now, commit_self=False)
        purged = await otp_challenge_db.purge_expired(
            session, cutoff, commit_self=False
        )
        scheduler_logger.info(
            f"Completed OTP challenge cleanup. Expired {expired}, purged {purged} record(s)."
        )
    return expired, purged
