"""SMS provider tags."""

from enum import StrEnum


class SmsProviderType(StrEnum):
    """Provider tags, also persisted on each OTP as the delivering provider."""

    TWILIO = "twilio"
    VONAGE = "vonage"
    AWS_SNS = "aws_sns"
    MOCK = "mock"
