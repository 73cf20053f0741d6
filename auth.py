"""
Admin authentication: PBKDF2 password hashes and bearer-token sessions
stored in Mongo.
"""

import hashlib
import hmac
import logging
import re
import secrets
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

import config
from database import as_utc, collection, create_document, serialize, to_object_id, update_document, utcnow
from errors import BadRequestError, ConflictError, ForbiddenError, UnauthorizedError
from responses import created, success
from schemas import Address, Session as SessionSchema, User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

STRONG_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


# -----------------
# Password hashing
# -----------------

def hash_password(password: str, salt: Optional[str] = None):
    if not salt:
        salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), 120_000)
    return dk.hex(), salt


def verify_password(password: str, password_hash: str, salt: str) -> bool:
    if not password_hash or not salt:
        return False
    computed, _ = hash_password(password, salt)
    return hmac.compare_digest(computed, password_hash)


# -----------------
# Request models
# -----------------

class SignupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str = Field(..., min_length=1)

    @field_validator("new_password")
    @classmethod
    def mixed_characters(cls, v):
        if not STRONG_PASSWORD_RE.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    phone_number: Optional[str] = Field(None, max_length=30)
    address: Optional[Address] = None


def public_user(doc: dict) -> dict:
    return {
        "id": str(doc.get("_id")),
        "name": doc.get("name"),
        "email": doc.get("email"),
        "role": doc.get("role", "editor"),
        "avatar_url": doc.get("avatar_url"),
        "bio": doc.get("bio"),
        "phone_number": doc.get("phone_number"),
        "address": doc.get("address"),
        "is_active": doc.get("is_active", True),
    }


def create_user(name: str, email: str, password: str, role: str = "editor") -> str:
    email = email.lower()
    if collection("user").find_one({"email": email}):
        raise ConflictError("Email already registered")
    password_hash, salt = hash_password(password)
    user = UserSchema(name=name, email=email, password_hash=password_hash, salt=salt, role=role)
    user_id = create_document("user", user)
    logger.info("Created %s user %s", role, email)
    return user_id


def open_session(user_id: str) -> str:
    token = secrets.token_urlsafe(32)
    create_document("session", SessionSchema(
        token=token,
        user_id=user_id,
        expires_at=utcnow() + timedelta(days=config.SESSION_TTL_DAYS),
    ))
    return token


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        raise UnauthorizedError("Invalid auth scheme")
    return authorization.split(" ", 1)[1].strip()


# -----------------
# Dependencies
# -----------------

def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    token = _bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Missing Authorization header")
    sessions = collection("session")
    session = sessions.find_one({"token": token})
    if not session:
        raise UnauthorizedError("Invalid or expired token")
    expires_at = as_utc(session.get("expires_at"))
    if expires_at and utcnow() > expires_at:
        sessions.delete_one({"_id": session["_id"]})
        raise UnauthorizedError("Session expired")
    user = collection("user").find_one({"_id": to_object_id(session.get("user_id"))})
    if not user:
        raise UnauthorizedError("User not found")
    if not user.get("is_active", True):
        raise ForbiddenError("User disabled")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise ForbiddenError("Admin access required")
    return user


# -----------------
# Routes
# -----------------

@router.post("/auth/signup")
def signup(payload: SignupRequest, authorization: Optional[str] = Header(None)):
    # The very first account bootstraps the site as admin; after that only
    # admins may add editors.
    if collection("user").count_documents({}) == 0:
        role = "admin"
    else:
        require_admin(get_current_user(authorization))
        role = "editor"
    user_id = create_user(payload.name, payload.email, payload.password, role)
    user = collection("user").find_one({"_id": to_object_id(user_id)})
    token = open_session(user_id)
    return created({"token": token, "user": public_user(user)}, "Registration successful")


@router.post("/auth/login")
def login(payload: LoginRequest):
    user = collection("user").find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash"), user.get("salt")):
        logger.warning("Failed login for %s", payload.email)
        raise UnauthorizedError("Invalid email or password")
    if not user.get("is_active", True):
        raise ForbiddenError("User disabled")
    token = open_session(str(user["_id"]))
    logger.info("User %s logged in", user["email"])
    return success({"token": token, "user": public_user(user)}, "Login successful")


@router.post("/auth/logout")
def logout(authorization: Optional[str] = Header(None)):
    token = _bearer_token(authorization)
    if token:
        collection("session").delete_many({"token": token})
    return success(message="Logout successful")


@router.get("/auth/me")
def me(user: dict = Depends(get_current_user)):
    return success({"user": public_user(user)})


@router.get("/admin/users")
def list_users(admin: dict = Depends(require_admin)):
    users: List[dict] = [public_user(u) for u in collection("user").find().sort("created_at", 1)]
    return success(serialize(users))


@router.put("/user/password")
def change_password(
    payload: PasswordChange,
    user: dict = Depends(get_current_user),
    authorization: Optional[str] = Header(None),
):
    if not verify_password(payload.current_password, user.get("password_hash"), user.get("salt")):
        logger.warning("Wrong current password for %s", user["email"])
        raise BadRequestError("Current password is incorrect")
    password_hash, salt = hash_password(payload.new_password)
    update_document("user", user["_id"], {"password_hash": password_hash, "salt": salt})
    # The session making the change stays open; every other one ends.
    ended = collection("session").delete_many({
        "user_id": str(user["_id"]),
        "token": {"$ne": _bearer_token(authorization)},
    }).deleted_count
    logger.info("Password changed for %s, %d other session(s) ended", user["email"], ended)
    return success(message="Password updated successfully")


@router.patch("/user/profile")
def update_profile(payload: ProfileUpdate, user: dict = Depends(get_current_user)):
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and not changes["name"]:
        raise BadRequestError("Name cannot be empty")
    if changes.get("name"):
        changes["name"] = changes["name"].strip()
    doc = update_document("user", user["_id"], changes)
    logger.info("Profile updated for %s: %s", user["email"], sorted(changes))
    return success({"user": public_user(doc)}, "Profile updated successfully")
