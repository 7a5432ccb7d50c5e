from fastapi import APIRouter, Depends

from waterops.api.deps import get_identity
from waterops.schemas.api_models import Identity

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/user", response_model=Identity)
def current_user(identity: Identity = Depends(get_identity)):
    """The operator this deployment runs as."""
    return identity
