import re
from pydantic import BaseModel, Field, field_validator
from typing import Optional

E164 = re.compile(r"^\+[1-9]\d{7,14}$")


class SmsSendRequest(BaseModel):
    to: str
    body: str = Field(min_length=1, max_length=1600)

    @field_validator("to")
    @classmethod
    def validate_e164(cls, value: str) -> str:
        value = re.sub(r"[\s().-]", "", value)
        if not E164.match(value):
            raise ValueError("Phone number must be in E.164 format, e.g. +15551234567")
        return value


class SmsSendResponse(BaseModel):
    id: Optional[str] = None
    sid: str
    status: str
    to: str
