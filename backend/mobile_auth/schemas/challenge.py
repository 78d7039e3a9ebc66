"""Device challenge schemas"""

from datetime import datetime
from pydantic import BaseModel, Field, field_serializer

from mobile_auth.core.clock import to_iso
from mobile_auth.schemas.user import CamelModel


class ChallengeData(CamelModel):
    """Issued nonce"""
    nonce: str
    expires_at: datetime

    @field_serializer("expires_at")
    def _serialize_expires_at(self, value: datetime) -> str:
        return to_iso(value)


class ChallengeResponse(BaseModel):
    data: ChallengeData


class ChallengeVerifyRequest(BaseModel):
    nonce: str = Field(..., min_length=1, max_length=128)


class ChallengeVerifyData(BaseModel):
    verified: bool


class ChallengeVerifyResponse(BaseModel):
    data: ChallengeVerifyData
