import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import create_access_token, get_current_user, gravatar_url, hash_password, verify_password
from database import create_document, find_by_id, get_db, get_documents, serialize_doc, to_object_id
from envelope import Envelope, success
from schemas import NonEmptyStr, User as UserSchema, check_password_strength

logger = logging.getLogger(__name__)

user_router = APIRouter(prefix="/users", tags=["users"])


# Auth models
class RegisterInput(BaseModel):
    name: NonEmptyStr
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class PasswordInput(BaseModel):
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


def _get_user_or_404(db: Database, user_id: str) -> Dict[str, Any]:
    user = find_by_id(db, "user", user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User Not Found")
    return user


@user_router.get("", response_model=Envelope)
def list_users(db: Database = Depends(get_db)):
    users = get_documents(db, "user")
    return success(serialize_doc(users), "Successfully Get All User")


@user_router.post("/register", status_code=201, response_model=Envelope)
def register(payload: RegisterInput, db: Database = Depends(get_db)):
    email = payload.email.lower()
    user_model = UserSchema(
        name=payload.name,
        email=email,
        password=hash_password(payload.password),
        image_url=gravatar_url(email),
        is_admin=False,
    )
    try:
        user_id = create_document(db, "user", user_model)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email Already Exist")
    logger.info("Registered user %s", user_id)
    user = db["user"].find_one({"_id": user_id})
    return success(serialize_doc(user), "User Register Successfull")


@user_router.post("/login", response_model=Envelope)
def login(payload: LoginInput, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid Email Address")
    if not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=400, detail="Invalid Password")
    token = create_access_token({"sub": str(user["_id"]), "email": user["email"]})
    user = serialize_doc(user)
    # Never send password hash
    user.pop("password", None)
    return success({"access_token": token, "token_type": "bearer", "user": user}, "Login Success")


@user_router.get("/login/me", response_model=Envelope)
def me(current_user: dict = Depends(get_current_user)):
    return success(serialize_doc(current_user), "Login Success")


@user_router.get("/{user_id}", response_model=Envelope)
def get_user(user_id: str, db: Database = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    return success(serialize_doc(user), "Successfull")


@user_router.put("/{user_id}", response_model=Envelope)
def update_user(user_id: str, payload: PasswordInput, db: Database = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(payload.password), "updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="User Not Found")
    return success(serialize_doc(updated), "Password Update Successfull")


@user_router.delete("/{user_id}", response_model=Envelope)
def delete_user(user_id: str, db: Database = Depends(get_db)):
    obj_id = to_object_id(user_id)
    res = db["user"].delete_one({"_id": obj_id}) if obj_id else None
    if res is None or res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User Not Found")
    logger.info("Deleted user %s", user_id)
    return success({}, "User Delete Successfull")
