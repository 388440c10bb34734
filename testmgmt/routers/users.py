from fastapi import APIRouter, Depends, HTTPException, status

from testmgmt.dependencies import get_current_user, get_user_store, require_roles
from testmgmt.models.user import UserRole
from testmgmt.schemas.users import UserResponse
from testmgmt.services.tokens import TokenData
from testmgmt.services.users import UserStore

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def read_me(
    current: TokenData = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
) -> UserResponse:
    user = users.get_user(current.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    return user


@router.get("", response_model=list[UserResponse])
def list_users(
    _: TokenData = Depends(require_roles(UserRole.admin, UserRole.qa_lead)),
    users: UserStore = Depends(get_user_store),
) -> list[UserResponse]:
    return users.list_users()
