# rollcall/schemas/user.py
from __future__ import annotations
from typing import Literal
from pydantic import BaseModel

RoleName = Literal["student", "instructor", "admin"]

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: RoleName

    model_config = {"from_attributes": True}
