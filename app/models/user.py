"""
User Models
Pydantic models for bearer-token authenticated users
"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UserRole(str, Enum):
    """User roles for RBAC"""
    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """User resolved from a verified access token"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
