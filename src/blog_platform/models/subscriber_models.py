"""Newsletter subscription models."""

from pydantic import BaseModel, EmailStr, Field


class SubscribeRequest(BaseModel):
    email: EmailStr = Field(..., description="Address to subscribe")


class VerifyResponse(BaseModel):
    message: str
    email: EmailStr
