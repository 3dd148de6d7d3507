"""
Request payloads for the API routes.

Text fields are length-checked on the raw input and sanitized afterwards.
Validation errors surface as 400 with per-field messages (see
`main.validation_exception_handler`), never as FastAPI's default 422.
"""
from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.web.sanitize import sanitize_text


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class CreateManagerPayload(_Payload):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=40)

    @field_validator("name")
    @classmethod
    def _clean_name(cls, v: str) -> str:
        cleaned = sanitize_text(v)
        if not cleaned:
            raise ValueError("Name is required")
        return cleaned

    @field_validator("phone")
    @classmethod
    def _clean_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return sanitize_text(v) or None


class InvitePayload(_Payload):
    email: EmailStr
    role: Literal["admin", "manager", "tenant"] = "tenant"

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class MaintenanceRequestPayload(_Payload):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    priority: Literal["low", "medium", "high"]
    unit_id: UUID = Field(..., alias="unitId")

    @field_validator("title", "description")
    @classmethod
    def _clean(cls, v: str) -> str:
        return sanitize_text(v)


class MessagePayload(_Payload):
    receiver_id: UUID = Field(..., alias="receiverId")
    subject: Optional[str] = Field(default=None, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)

    @field_validator("subject")
    @classmethod
    def _clean_subject(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v) if v else v

    @field_validator("content")
    @classmethod
    def _clean_content(cls, v: str) -> str:
        return sanitize_text(v)


__all__ = [
    "CreateManagerPayload",
    "InvitePayload",
    "MaintenanceRequestPayload",
    "MessagePayload",
]
