# rollcall/schemas/token.py
from pydantic import BaseModel, Field
from rollcall.schemas.user import UserOut

class LoginIn(BaseModel):
    email: str
    password: str = Field(min_length=1, max_length=128)

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut
