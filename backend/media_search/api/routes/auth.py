from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator
from media_search.core.database import get_db
from media_search.models.user import User
from media_search.api.dependencies import get_current_user
from media_search.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=8, max_length=72)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public view of a user - the password hash has no field here"""
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(UserResponse):
    created_at: Optional[datetime] = None

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a new user"""
    return auth_service.register(db, user_data.name, user_data.email, user_data.password)


@router.post("/login", response_model=LoginResponse)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get a bearer token"""
    token, user = auth_service.login(db, credentials.email, credentials.password)
    return {"token": token, "user": user}


@router.get("/me", response_model=ProfileResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user
