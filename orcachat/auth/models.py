from pydantic import BaseModel, Field


class RegisterIn(BaseModel):
    email: str = Field(..., min_length=1, examples=["user@example.com"])
    password: str = Field(..., min_length=1)

class SignIn(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
