"""User registration API."""
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from interviewprep.features.users.service import create_user
from interviewprep.models.user import User

router = APIRouter(prefix="/v1/users", tags=["users"])


class CreateUserRequest(BaseModel):
    email: str
    name: Optional[str] = None


@router.post("", response_model=User, status_code=201)
def register_user(body: CreateUserRequest):
    return create_user(body.email, body.name)
