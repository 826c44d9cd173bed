# sosrelay/routers/auth.py
"""Operator login — exchanges the demo credential pair for a bearer token."""

from fastapi import APIRouter

from sosrelay.schemas.auth import LoginIn, TokenOut
from sosrelay.services.auth_service import issue_token

router = APIRouter()


@router.post("/login", response_model=TokenOut, summary="Operator login")
def login(body: LoginIn):
    return {"token": issue_token(body.email, body.password)}
