from fastapi import APIRouter,Depends,status
from loguru import logger

from johari.core.security import issue_anonymous_identity,get_current_identity
from johari.models.token import Token,Me

router=APIRouter()

@router.post("/anonymous",response_model=Token,status_code=status.HTTP_201_CREATED,summary="Sign in anonymously and get a JWT access token")
async def sign_in_anonymously():
    identity,access_token=issue_anonymous_identity()
    return {
        "access_token":access_token,
        "token_type":"bearer",
        "identity":identity
    }


@router.get("/me", response_model=Me)
async def read_current_identity(identity: str = Depends(get_current_identity)):
    """
    Retrieve the identity carried by the caller's access token.
    This endpoint requires a valid JWT access token.
    """
    logger.debug(f"Resolved identity {identity}")
    return Me(identity=identity)
