from docubuddy.database import get_session
from docubuddy.schemas.token import Token
from docubuddy.schemas.user import SignUpRequest, UserRead
from docubuddy.services.auth import auth_provider, oauth2_scheme
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session
from typing import Annotated, Optional


router = APIRouter(prefix="", tags=["Authenticator"])


@router.post("/signup", response_model=UserRead)
async def signup(user: SignUpRequest, session: Session = Depends(get_session)):
    return auth_provider.sign_up(session, user.email, user.password,
                                 {"full_name": user.full_name, "role": user.role})


@router.post("/login", response_model=Token)
async def login_user(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: Annotated[Session, Depends(get_session)]
):
    # The form's username field carries the e-mail
    access_token = auth_provider.sign_in_with_password(session, form_data.username, form_data.password)
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout", status_code=204)
async def logout_user(token: Annotated[Optional[str], Depends(oauth2_scheme)]):
    auth_provider.sign_out(token)
    return
