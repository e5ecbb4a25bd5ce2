from typing import Optional

from fastapi import APIRouter, Depends, Request

from services.availability.api.auth import (
    get_tenant_id_from_request,
    get_user_id_from_request,
)
from services.availability.schemas import (
    CreateDefaultProfileRequest,
    CreateProfileRequest,
    ProfileResponse,
    ProfilesListResponse,
    SlotsListResponse,
    SuccessResponse,
    UpdateProfileRequest,
)
from services.availability.services.availability_service import (
    AvailabilityService,
    get_availability_service,
)

router = APIRouter()


@router.post("", response_model=ProfileResponse, status_code=201)
async def create_profile(
    body: CreateProfileRequest,
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
) -> ProfileResponse:
    data = body.model_dump(exclude_none=True)
    data["tenant_id"] = get_tenant_id_from_request(request)
    data["user_id"] = get_user_id_from_request(request, body.user_id)
    profile = await service.create_profile(data)
    return ProfileResponse(data=profile, message="Profile created")


@router.post("/default", response_model=ProfileResponse, status_code=201)
async def create_default_profile(
    body: CreateDefaultProfileRequest,
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
) -> ProfileResponse:
    profile = await service.create_default_profile(
        get_tenant_id_from_request(request),
        get_user_id_from_request(request, body.user_id),
        body.customizations,
    )
    return ProfileResponse(data=profile, message="Default profile created")


@router.get("", response_model=ProfilesListResponse)
async def list_profiles(
    request: Request,
    user_id: Optional[str] = None,
    service: AvailabilityService = Depends(get_availability_service),
) -> ProfilesListResponse:
    profiles = await service.get_profiles(get_tenant_id_from_request(request), user_id)
    return ProfilesListResponse(data=profiles, total=len(profiles))


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str,
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
) -> ProfileResponse:
    profile = await service.require_profile(profile_id, get_tenant_id_from_request(request))
    return ProfileResponse(data=profile)


@router.put("/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: str,
    body: UpdateProfileRequest,
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
) -> ProfileResponse:
    await service.require_profile(profile_id, get_tenant_id_from_request(request))
    profile = await service.update_profile(profile_id, body.model_dump(exclude_unset=True))
    return ProfileResponse(data=profile, message="Profile updated")


@router.delete("/{profile_id}", response_model=SuccessResponse)
async def delete_profile(
    profile_id: str,
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
) -> SuccessResponse:
    await service.require_profile(profile_id, get_tenant_id_from_request(request))
    removed = await service.delete_profile(profile_id)
    return SuccessResponse(
        data={"profile_id": profile_id, "slots_removed": removed},
        message="Profile deleted",
    )


@router.get("/{profile_id}/slots", response_model=SlotsListResponse)
async def list_profile_slots(
    profile_id: str,
    request: Request,
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotsListResponse:
    await service.require_profile(profile_id, get_tenant_id_from_request(request))
    slots = await service.get_slots(profile_id)
    return SlotsListResponse(data=slots, total=len(slots))
