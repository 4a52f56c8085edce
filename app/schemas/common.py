"""Shared schema types."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class FilePayload(BaseModel):
    """An uploaded file read into memory."""

    content: bytes
    filename: str = "file"
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else "bin"


class ErrorResponse(BaseModel):
    """Error body returned by every failing route."""

    error: str = Field(..., description="Human readable error message")
    details: Optional[Any] = None
