
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.auth.deps import get_db, get_current_token, get_current_user
from app.auth import service
from app.models.user import AccessToken, User
from app.schemas.auth import RegisterIn, LoginIn, ProfileUpdate, UserOut, TokenOut
from app.utils.payloads import serialize
from app.utils.responses import envelope

router = APIRouter(prefix="/auth", tags=["auth"])

def _session_payload(user: User, token: str) -> dict:
    return {
        "user": serialize(UserOut, user),
        **TokenOut(token=token).model_dump(),
    }

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterIn, db: Session = Depends(get_db)):
    user, token = service.register_user(db, body)
    return envelope(_session_payload(user, token), "User registered")

@router.post("/login")
def login(body: LoginIn, db: Session = Depends(get_db)):
    user, token = service.login_user(db, body)
    return envelope(_session_payload(user, token), "Logged in")

@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return envelope({"user": serialize(UserOut, user)})

@router.put("/profile")
def update_profile(body: ProfileUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    user = service.update_profile(db, user, body)
    return envelope({"user": serialize(UserOut, user)}, "Profile updated")

@router.post("/logout")
def logout(db: Session = Depends(get_db), token: AccessToken = Depends(get_current_token)):
    service.logout(db, token)
    return envelope(message="Logged out")

@router.post("/logout-all")
def logout_all(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = service.logout_all(db, user)
    return envelope({"revoked": count}, "Logged out from all devices")

@router.post("/refresh")
def refresh(db: Session = Depends(get_db), token: AccessToken = Depends(get_current_token)):
    new_token = service.refresh(db, token)
    return envelope(TokenOut(token=new_token).model_dump(), "Token refreshed")
