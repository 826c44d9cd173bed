from pydantic import BaseModel
from typing import Optional


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenOut(BaseModel):
    token: str
