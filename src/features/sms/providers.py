"""SMS providers.

Every carrier implements the same two capabilities: ``send_otp`` hands a text
message to the carrier and ``is_available`` reports whether the provider is
configured. Providers never retry; the caller decides what to do on failure.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from src.config.logging_config import mask_phone

from .constants import SmsProviderType

logger = logging.getLogger(__name__)


class SmsProvider(ABC):
    """Capability contract shared by all SMS carriers."""

    provider_type: SmsProviderType

    @property
    def name(self) -> str:
        return self.provider_type.value

    @abstractmethod
    async def send_otp(self, phone_number: str, message: str) -> bool:
        """Send a text message.

        Args:
            phone_number: Recipient phone number in E.164 format
            message: Plain-text message body

        Returns:
            True if the message was handed off to the carrier, False otherwise

        """

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether the provider can be used (configuration check, no network)."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class MockSmsProvider(SmsProvider):
    """Development/testing provider: logs the message instead of sending it."""

    provider_type = SmsProviderType.MOCK

    def __init__(self, delay_seconds: float = 0.1):
        self.delay_seconds = delay_seconds

    async def send_otp(self, phone_number: str, message: str) -> bool:
        logger.info(f"MOCK SMS to {mask_phone(phone_number)}: {message}")
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)  # simulated network latency
        return True

    async def is_available(self) -> bool:
        return True


class CarrierSmsProvider(SmsProvider):
    """Base for real carriers: available only when every credential is populated.

    Subclasses list their required credentials in ``required_credentials``.
    Delivery itself is a handoff to the carrier SDK, which this service does not
    integrate with; ``deliver`` logs the handoff.
    """

    required_credentials: tuple[str, ...] = ()

    def is_configured(self) -> bool:
        return all(getattr(self, attr, None) for attr in self.required_credentials)

    async def is_available(self) -> bool:
        return self.is_configured()

    async def send_otp(self, phone_number: str, message: str) -> bool:
        if not self.is_configured():
            logger.warning(f"{self.name} is not properly configured")
            return False

        try:
            return await self.deliver(phone_number, message)
        except Exception:
            logger.exception(f"Error sending SMS via {self.name} to {mask_phone(phone_number)}")
            return False

    async def deliver(self, phone_number: str, message: str) -> bool:
        logger.info(f"SMS sent via {self.name} to {mask_phone(phone_number)}")
        return True


class TwilioSmsProvider(CarrierSmsProvider):
    """Twilio Programmable Messaging."""

    provider_type = SmsProviderType.TWILIO
    required_credentials = ("account_sid", "auth_token", "from_number")

    def __init__(self, account_sid: str, auth_token: str, from_number: str, region: str | None = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.region = region


class VonageSmsProvider(CarrierSmsProvider):
    """Vonage SMS API."""

    provider_type = SmsProviderType.VONAGE
    required_credentials = ("api_key", "api_secret", "from_name")

    def __init__(self, api_key: str, api_secret: str, from_name: str):
        self.api_key = api_key
        self.api_secret = api_secret
        self.from_name = from_name


class AwsSnsSmsProvider(CarrierSmsProvider):
    """AWS Simple Notification Service direct SMS publishing."""

    provider_type = SmsProviderType.AWS_SNS
    required_credentials = ("access_key", "secret_key", "region")

    def __init__(self, access_key: str, secret_key: str, region: str):
        self.access_key = access_key
        self.secret_key = secret_key
        self.region = region
