import logging

from fastapi import APIRouter, Depends, HTTPException

from app.config import Settings
from app.dependencies.services import get_settings, get_storage
from app.exceptions import StoreError
from app.models.admin import Admin
from app.schemas.admin_schemas import AdminCredentials, LoginResponse, SetupResponse
from app.storage.base import LedgerStore
from app.utils.hash import hash_password, verify_password
from app.utils.token import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(
    payload: AdminCredentials,
    store: LedgerStore = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    username = payload.username.strip()
    if not username:
        raise HTTPException(400, "Username is required")
    if not payload.password:
        raise HTTPException(400, "Password is required")

    admin = store.get_admin_by_username(username)
    if not admin or not verify_password(payload.password, admin.password):
        raise HTTPException(401, "Invalid credentials")

    token = create_access_token({"id": admin.id, "username": admin.username}, settings)
    return {"token": token, "admin": {"id": admin.id, "username": admin.username}}


@router.post("/setup", response_model=SetupResponse)
def setup_admin(payload: AdminCredentials, store: LedgerStore = Depends(get_storage)):
    username = payload.username.strip()
    if not username:
        raise HTTPException(400, "Username is required and must be a string")
    if len(payload.password) < 6:
        raise HTTPException(400, "Password is required and must be at least 6 characters")

    if store.get_admin_by_username(username):
        raise HTTPException(400, "Admin already exists")

    try:
        admin = store.create_admin(
            Admin(username=username, password=hash_password(payload.password))
        )
    except StoreError:
        # lost a race on the unique username
        raise HTTPException(400, "Admin already exists")

    logger.info(f"Admin account created: {admin.username}")
    return {
        "message": "Admin created successfully",
        "admin": {"id": admin.id, "username": admin.username},
    }
