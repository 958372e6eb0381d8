"""Models module"""
from .api import ApiResponse, HealthResponse
from .user import User, UserRole

__all__ = ["ApiResponse", "HealthResponse", "User", "UserRole"]
