"""User API routes — identity and role profiles."""
import logging
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from hub.database import get_db
from hub.schemas.user import UserCreate, UserProfileIn, UserOut, RoleProfileOut, AccountStatusUpdate, LoginRequest
from hub.services import identity_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Register a user together with its role profile."""
    profile = UserProfileIn(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return identity_service.create_user(db, profile, payload.role, payload.role_attributes)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return identity_service.get_user(db, user_id)


@router.get("/{user_id}/profile", response_model=RoleProfileOut)
def get_role_profile(user_id: str, db: Session = Depends(get_db)):
    """Role tag plus the role-specific attributes."""
    user = identity_service.get_role_profile(db, user_id)
    return RoleProfileOut(user_id=user.id, role=user.role, attributes=user.profile_attributes())


@router.post("/{user_id}/status", response_model=UserOut)
def set_account_status(user_id: str, payload: AccountStatusUpdate, db: Session = Depends(get_db)):
    return identity_service.set_account_status(db, user_id, payload.status)


@router.post("/login", response_model=UserOut)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Verify credentials and append to the login history. Issues no token."""
    ip_address = request.client.host if request.client else None
    return identity_service.authenticate(db, payload.email, payload.password, ip_address)
