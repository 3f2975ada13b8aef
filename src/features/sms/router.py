"""SMS diagnostics router."""

from fastapi import APIRouter, Depends

from src.features.auth.dependencies import require_role
from src.features.user.models import UserRole

from .dependencies import get_sms_router
from .provider_router import SmsProviderRouter
from .schemas import ProviderStatus, ProviderStatusResponse

router = APIRouter(prefix="/sms", tags=["SMS"])


@router.get("/providers", response_model=ProviderStatusResponse, dependencies=[Depends(require_role(UserRole.ADMIN))])
async def list_providers(sms_router: SmsProviderRouter = Depends(get_sms_router)):
    """List registered SMS providers and whether each is available (admin only)."""
    available = {provider_type for provider_type, _ in await sms_router.list_available_providers()}
    statuses = [
        ProviderStatus(provider=provider_type, available=provider_type in available)
        for provider_type in sms_router.providers
    ]
    return ProviderStatusResponse(providers=statuses, available_count=len(available))
