from taskgate.core.services.email import BrevoEmailSender, EmailSender
from taskgate.core.services.onboarding import (
    AccountOnboardingService,
    SessionGrant,
    SignupResult,
)
from taskgate.core.services.otp import IssuedChallenge, OtpChallengeService
from taskgate.core.services.rate_limit import (
    MemoryBackend,
    RateLimiter,
    RedisBackend,
)
from taskgate.core.services.tokens import SessionTokenService

__all__ = [
    "AccountOnboardingService",
    "BrevoEmailSender",
    "EmailSender",
    "IssuedChallenge",
    "MemoryBackend",
    "OtpChallengeService",
    "RateLimiter",
    "RedisBackend",
    "SessionGrant",
    "SessionTokenService",
    "SignupResult",
]
