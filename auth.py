"""
Staff authentication for hotel (tenant) domains.

Users live in the tenant database. Tokens are HS256 JWTs carrying the user id
and the subdomain they were issued for, so a token from one hotel is useless
on another.
"""

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from config import Settings, get_settings
from database import create_document, serialize_doc, utcnow
from errors import AuthenticationError
from schemas import User, UserRole
from tenancy import Tenant, get_tenant, require_tenant

logger = logging.getLogger(__name__)

PBKDF2_ROUNDS = 390000


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${salt}${digest.hex()}"


def verify_password(stored: str, provided: str) -> bool:
    try:
        _, salt, hex_digest = stored.split("$")
    except ValueError:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", provided.encode(), salt.encode(), PBKDF2_ROUNDS)
    return secrets.compare_digest(candidate.hex(), hex_digest)


def create_access_token(user_id: str, subdomain: str, settings: Settings) -> str:
    now = utcnow()
    payload = {
        "id": user_id,
        "tenant": subdomain,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(doc)
    user.pop("password_hash", None)
    return user


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Not authorized to access this route")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Not authorized to access this route")
    return token


def get_current_user(
    token: str = Depends(bearer_token),
    tenant: Tenant = Depends(get_tenant),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    payload = decode_access_token(token, settings)
    if tenant.is_main_domain or tenant.db is None:
        raise AuthenticationError("Hotel not resolved for this token")
    if payload.get("tenant") != tenant.subdomain:
        raise AuthenticationError("Token was issued for another hotel")
    try:
        user = tenant.db["user"].find_one({"_id": ObjectId(payload.get("id"))})
    except (InvalidId, TypeError):
        user = None
    if not user:
        raise AuthenticationError("User not found in hotel database")
    return public_user(user)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: UserRole = "manager"


class LoginRequest(BaseModel):
    email: str
    password: str


router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user_doc: Dict[str, Any], tenant: Tenant, settings: Settings) -> Dict[str, Any]:
    user = public_user(user_doc)
    return {
        "success": True,
        "token": create_access_token(user["id"], tenant.subdomain, settings),
        "user": user,
    }


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, tenant: Tenant = Depends(require_tenant), settings: Settings = Depends(get_settings)):
    email = payload.email.strip().lower()
    if tenant.db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")
    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        hotel_name=tenant.hotel["name"],
    )
    user_id = create_document("user", user, database=tenant.db)
    logger.info(f"Registered {payload.role} {email} for hotel {tenant.subdomain}")
    return _token_response(tenant.db["user"].find_one({"_id": ObjectId(user_id)}), tenant, settings)


@router.post("/login")
def login(payload: LoginRequest, tenant: Tenant = Depends(require_tenant), settings: Settings = Depends(get_settings)):
    user = tenant.db["user"].find_one({"email": payload.email.strip().lower()})
    if not user or not verify_password(user.get("password_hash", ""), payload.password):
        raise AuthenticationError("Invalid credentials")
    return _token_response(user, tenant, settings)


@router.get("/me")
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return {"success": True, "data": user}


@router.post("/logout")
def logout(user: Dict[str, Any] = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy.
    logger.info(f"User {user['email']} logged out")
    return {"success": True, "data": {}}
