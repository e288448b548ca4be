from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from telemed.auth import jwt_handler
from telemed.auth.dependencies import get_current_user
from telemed.auth.security import verify_password
from telemed.models.user import User
from telemed.routes.common import get_db

router = APIRouter(tags=['auth'])


class TokenRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'


@router.post("/token", response_model=TokenResponse)
def issue_token(data: TokenRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()
    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Incorrect email or password")

    token = jwt_handler.create_access_token(subject=user.email, role=user.role)
    return TokenResponse(access_token=token)


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {"id": current_user.id, "email": current_user.email, "role": current_user.role}
