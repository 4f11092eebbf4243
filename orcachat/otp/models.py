from pydantic import BaseModel, Field


class SendOtpIn(BaseModel):
    email: str = Field(..., min_length=1, examples=["user@example.com"])

class VerifyOtpIn(BaseModel):
    email: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, examples=["123456"])
