from fastapi import APIRouter, Depends

from snapybara.api.deps import AuthUser, get_user_service, require_user
from snapybara.dto import UserProfileDTO
from snapybara.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserProfileDTO, summary="The caller's profile and claims")
async def me(
    user: AuthUser = Depends(require_user),
    svc: UserService = Depends(get_user_service),
):
    return await svc.get_profile(user)
