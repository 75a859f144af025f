"""
Authentication API router - delegates to the auth controller.
"""

from src.api.controller.auth.auth_controller import router

__all__ = ["router"]
