import secrets

from fastapi import APIRouter, Depends, Form, HTTPException
from starlette.responses import PlainTextResponse

from filevault.api.deps import AUTH_COOKIE_VALUE, get_settings
from filevault.core.config import Settings

router = APIRouter()

@router.post("/login", response_class=PlainTextResponse)
def login(
    username: str = Form(""),
    password: str = Form(""),
    settings: Settings = Depends(get_settings),
):
    user_ok = secrets.compare_digest(username.encode(), settings.ADMIN_USERNAME.encode())
    pass_ok = secrets.compare_digest(password.encode(), settings.ADMIN_PASSWORD.encode())
    if not (user_ok and pass_ok):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    resp = PlainTextResponse("Login successful")
    resp.set_cookie(settings.AUTH_COOKIE_NAME, AUTH_COOKIE_VALUE, path="/", httponly=True)
    return resp

@router.post("/logout", response_class=PlainTextResponse)
def logout(settings: Settings = Depends(get_settings)):
    resp = PlainTextResponse("Logout successful")
    resp.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return resp
