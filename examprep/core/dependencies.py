"""
Dependency injection for FastAPI endpoints.
"""
from datetime import datetime
from typing import Callable, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from examprep.core.config import settings
from examprep.core.llm_config import LLMFactory
from examprep.core.security import decode_token
from examprep.db.base import get_db
from examprep.models.user import User
from examprep.services.adaptive_session import AdaptiveSessionManager, utcnow
from examprep.services.question_source import QuestionSource

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login")


def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        db: Database session
        token: JWT token

    Returns:
        Current user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise credentials_exception

    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Get current active user.

    Raises:
        HTTPException: If user is inactive
    """
    if not cast(bool, current_user.is_active):
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def get_clock() -> Callable[[], datetime]:
    """Time source for session timing. Overridden in tests."""
    return utcnow


def get_question_source(db: Session = Depends(get_db)) -> QuestionSource:
    return QuestionSource(db)


def get_session_manager(
    db: Session = Depends(get_db),
    question_source: QuestionSource = Depends(get_question_source),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AdaptiveSessionManager:
    return AdaptiveSessionManager(db, question_source=question_source, clock=clock)


def require_llm_configured() -> None:
    """Reject AI-only endpoints when no LLM credentials are configured."""
    if not LLMFactory.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI question generation is not configured",
        )
