"""
Unified API response envelope
---------------------------------
Every endpoint returns `{"code", "message", "data"}`.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Standard response body"""
    code: int = 200
    message: str = "success"
    data: Optional[Any] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(code=200, message=message, data=data)

    @classmethod
    def error(cls, code: int, message: str, data: Any = None) -> "ApiResponse":
        return cls(code=code, message=message, data=data)
