from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.routes.deps import current_owner, success
from app.users.directory import UserProfile

router = APIRouter()


@router.get("/profile")
def get_profile(owner: UserProfile = Depends(current_owner)) -> JSONResponse:
    return success({"user": owner.model_dump()})
