from pydantic import BaseModel
from typing import Optional

class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    error_code: Optional[str] = None

class DatabaseError(ErrorResponse):
    error_code: str = "DATABASE_ERROR"
