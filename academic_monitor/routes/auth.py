from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from ..logs import LogContext
from ..services.auth_svc import (
    COOKIE_NAME,
    change_password,
    get_profile,
    login,
    logout,
    register,
)
from .deps import API_PREFIX, current_user, to_http

router = APIRouter()


class LoginBody(BaseModel):
    nim: str
    password: str


class RegisterBody(BaseModel):
    email: str
    password: str
    full_name: str | None = None


class ChangePasswordBody(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str | None = None


@router.post(f"{API_PREFIX}/auth/login")
def api_login(body: LoginBody, response: Response):
    log = LogContext("LOGIN")
    log.set_payload({"nim": body.nim})
    try:
        out = login(body.nim, body.password, log)
        log.write("OK")
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)
    response.set_cookie(
        COOKIE_NAME, out["access_token"], max_age=out["expires_in"], httponly=True, samesite="lax", path="/",
    )
    return out


@router.post(f"{API_PREFIX}/auth/register", status_code=201)
def api_register(body: RegisterBody):
    log = LogContext("REGISTER")
    log.set_payload({"email": body.email, "full_name": body.full_name})
    try:
        out = register(body.email, body.password, body.full_name, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.post(f"{API_PREFIX}/auth/logout")
def api_logout(response: Response, user: dict = Depends(current_user)):
    log = LogContext("LOGOUT")
    try:
        out = logout(user, log)
        log.write("OK")
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)
    response.delete_cookie(COOKIE_NAME, path="/")
    return out


@router.post(f"{API_PREFIX}/auth/change-password")
def api_change_password(body: ChangePasswordBody, user: dict = Depends(current_user)):
    log = LogContext("CHANGE_PASSWORD")
    try:
        out = change_password(user, body.current_password, body.new_password, body.confirm_password, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)


@router.get(f"{API_PREFIX}/profile")
def api_profile(user: dict = Depends(current_user)):
    try:
        return get_profile(user)
    except Exception as e:
        raise to_http(e)
