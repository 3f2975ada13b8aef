"""SMS diagnostics schemas."""

from pydantic import BaseModel

from .providers import SmsProviderType


class ProviderStatus(BaseModel):
    """Availability of one registered provider."""

    provider: SmsProviderType
    available: bool


class ProviderStatusResponse(BaseModel):
    """Diagnostics view of the provider table."""

    providers: list[ProviderStatus]
    available_count: int
