"""
Users API Router

Registration and existence checks backing the edge identity filter.
Registration is idempotent: re-registering a known subject or email returns
the existing user with 200 instead of creating a second one (201).
"""
from fastapi import APIRouter, Depends, Request, Response, status

from core.exceptions import NotFoundError
from core.security import IdentityClaim
from schemas import RegisterRequest, UserResponse
from services.user_store import UserStore

router = APIRouter(prefix="/api/users", tags=["users"])


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    body: RegisterRequest,
    response: Response,
    store: UserStore = Depends(get_user_store),
):
    claim = IdentityClaim(
        subject=body.keycloak_id or body.email,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    user, created = store.register(claim, body.password)
    if not created:
        response.status_code = status.HTTP_200_OK
    return user


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, store: UserStore = Depends(get_user_store)):
    user = store.get(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.get("/{user_id}/validate", response_model=bool)
def validate_user(user_id: str, store: UserStore = Depends(get_user_store)):
    """True if a user exists with this internal id or identity subject."""
    return store.exists(user_id)
