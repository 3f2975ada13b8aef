"""SMS dependencies for FastAPI."""

from functools import lru_cache

from src.config.settings import settings

from .provider_router import SmsProviderRouter
from .providers import AwsSnsSmsProvider, MockSmsProvider, SmsProvider, TwilioSmsProvider, VonageSmsProvider


def build_providers() -> list[SmsProvider]:
    """Instantiate the configured providers in fallback order."""
    providers: list[SmsProvider] = [
        TwilioSmsProvider(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            region=settings.twilio_region,
        ),
        VonageSmsProvider(
            api_key=settings.vonage_api_key,
            api_secret=settings.vonage_api_secret,
            from_name=settings.vonage_from_name,
        ),
        AwsSnsSmsProvider(
            access_key=settings.aws_sns_access_key,
            secret_key=settings.aws_sns_secret_key,
            region=settings.aws_sns_region,
        ),
    ]
    if settings.sms_mock_enabled:
        providers.append(MockSmsProvider(delay_seconds=settings.sms_mock_delay_seconds))
    return providers


@lru_cache(maxsize=1)
def get_sms_router() -> SmsProviderRouter:
    """Process-wide provider router, built on first use.

    Tests replace it through ``app.dependency_overrides[get_sms_router]``.
    """
    return SmsProviderRouter(build_providers())
