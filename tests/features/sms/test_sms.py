"""Tests for the sms feature.
Covers: provider availability, delivery outcomes, router preference/fallback, diagnostics endpoint,
preferred provider setting.
"""

import logging

import pytest
from fastapi import status
from pydantic import ValidationError

from src.config.settings import Settings
from src.features.sms.dependencies import build_providers
from src.features.sms.provider_router import SmsProviderRouter
from src.features.sms.providers import (
    AwsSnsSmsProvider,
    MockSmsProvider,
    SmsProviderType,
    TwilioSmsProvider,
    VonageSmsProvider,
)


class FailingTwilioProvider(TwilioSmsProvider):
    """Configured carrier whose delivery blows up."""

    async def deliver(self, phone_number: str, message: str) -> bool:
        raise ConnectionError("carrier unreachable")


def configured_twilio() -> TwilioSmsProvider:
    return TwilioSmsProvider(account_sid="AC123", auth_token="secret", from_number="+15550000000")


def unconfigured_twilio() -> TwilioSmsProvider:
    return TwilioSmsProvider(account_sid="", auth_token="", from_number="")


# Providers


class TestProviders:
    """Provider capability checks."""

    async def test_mock_is_always_available(self):
        assert await MockSmsProvider(delay_seconds=0).is_available() is True

    async def test_mock_send_succeeds(self):
        assert await MockSmsProvider(delay_seconds=0).send_otp("+911234567890", "Your OTP is: 123456.") is True

    async def test_mock_send_masks_phone_in_logs(self, caplog):
        with caplog.at_level(logging.INFO, logger="src.features.sms.providers"):
            await MockSmsProvider(delay_seconds=0).send_otp("+911234567890", "Your OTP is: 123456.")

        assert "+911234567890" not in caplog.text
        assert "*********7890" in caplog.text

    @pytest.mark.parametrize(
        "provider",
        [
            TwilioSmsProvider(account_sid="AC123", auth_token="", from_number="+15550000000"),
            VonageSmsProvider(api_key="key", api_secret="secret", from_name=""),
            AwsSnsSmsProvider(access_key="", secret_key="secret", region="us-east-1"),
        ],
    )
    async def test_carrier_with_missing_credential_is_unavailable(self, provider):
        assert await provider.is_available() is False

    async def test_fully_configured_carriers_are_available(self):
        providers = [
            configured_twilio(),
            VonageSmsProvider(api_key="key", api_secret="secret", from_name="Vendor"),
            AwsSnsSmsProvider(access_key="AKIA", secret_key="secret", region="us-east-1"),
        ]
        for provider in providers:
            assert await provider.is_available() is True

    async def test_unconfigured_carrier_send_returns_false(self):
        assert await unconfigured_twilio().send_otp("+911234567890", "hello") is False

    async def test_configured_carrier_send_returns_true(self):
        assert await configured_twilio().send_otp("+911234567890", "hello") is True

    async def test_delivery_exception_is_reported_as_failure(self):
        provider = FailingTwilioProvider(account_sid="AC123", auth_token="secret", from_number="+15550000000")
        assert await provider.send_otp("+911234567890", "hello") is False

    def test_provider_name_is_its_tag(self):
        assert MockSmsProvider().name == "mock"
        assert unconfigured_twilio().name == "twilio"


# Router


class TestProviderRouter:
    """Preference, fallback and registry rules of SmsProviderRouter."""

    async def test_preferred_provider_used_when_available(self):
        twilio = configured_twilio()
        router = SmsProviderRouter([twilio, MockSmsProvider(delay_seconds=0)])
        assert await router.select_provider(SmsProviderType.TWILIO) is twilio

    async def test_falls_back_when_preferred_unavailable(self):
        mock = MockSmsProvider(delay_seconds=0)
        router = SmsProviderRouter([unconfigured_twilio(), mock])
        assert await router.select_provider(SmsProviderType.TWILIO) is mock

    async def test_fallback_follows_registration_order(self):
        vonage = VonageSmsProvider(api_key="key", api_secret="secret", from_name="Vendor")
        mock = MockSmsProvider(delay_seconds=0)
        router = SmsProviderRouter([unconfigured_twilio(), vonage, mock])
        assert await router.select_provider(SmsProviderType.TWILIO) is vonage

    async def test_unregistered_preference_falls_back(self):
        mock = MockSmsProvider(delay_seconds=0)
        router = SmsProviderRouter([mock])
        assert await router.select_provider(SmsProviderType.VONAGE) is mock

    async def test_returns_none_when_nothing_available(self):
        router = SmsProviderRouter([unconfigured_twilio()])
        assert await router.select_provider(SmsProviderType.TWILIO) is None

    async def test_empty_router_returns_none(self):
        assert await SmsProviderRouter([]).select_provider(SmsProviderType.MOCK) is None

    def test_last_registrant_for_a_tag_wins(self):
        first = MockSmsProvider(delay_seconds=0)
        second = MockSmsProvider(delay_seconds=0)
        router = SmsProviderRouter([first, second])
        assert len(router.providers) == 1
        assert router.get_provider(SmsProviderType.MOCK) is second

    def test_registry_is_read_only(self):
        router = SmsProviderRouter([MockSmsProvider(delay_seconds=0)])
        with pytest.raises(TypeError):
            router.providers[SmsProviderType.TWILIO] = unconfigured_twilio()  # type: ignore[index]

    def test_get_provider_ignores_availability(self):
        twilio = unconfigured_twilio()
        router = SmsProviderRouter([twilio])
        assert router.get_provider(SmsProviderType.TWILIO) is twilio
        assert router.get_provider(SmsProviderType.VONAGE) is None

    async def test_list_available_providers(self):
        mock = MockSmsProvider(delay_seconds=0)
        router = SmsProviderRouter([unconfigured_twilio(), mock])
        assert await router.list_available_providers() == [(SmsProviderType.MOCK, mock)]

    def test_build_providers_registers_every_carrier_then_mock(self):
        tags = [provider.provider_type for provider in build_providers()]
        assert tags == [
            SmsProviderType.TWILIO,
            SmsProviderType.VONAGE,
            SmsProviderType.AWS_SNS,
            SmsProviderType.MOCK,
        ]


# Diagnostics endpoint


class TestProvidersEndpoint:
    """GET /sms/providers."""

    async def test_admin_sees_provider_status(self, admin_client):
        client, _ = admin_client
        response = await client.get("/api/sms/providers")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["available_count"] == 1
        assert {"provider": "twilio", "available": False} in data["providers"]
        assert {"provider": "mock", "available": True} in data["providers"]

    async def test_non_admin_is_forbidden(self, auth_client):
        client, _ = auth_client
        response = await client.get("/api/sms/providers")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_requires_authentication(self, client):
        response = await client.get("/api/sms/providers")
        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


# Settings


class TestPreferredProviderSetting:
    @pytest.mark.parametrize("tag", ["Twilio", "VONAGE", "aws_sns", "mock"])
    def test_accepts_every_provider_tag(self, tag):
        assert Settings(sms_preferred_provider=tag).sms_preferred_provider == SmsProviderType(tag.lower())

    def test_rejects_unknown_tag(self):
        with pytest.raises(ValidationError):
            Settings(sms_preferred_provider="pigeon")
