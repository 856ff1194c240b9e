"""Authentication and authorization dependencies for FastAPI routes.

`get_current_session` verifies the bearer token and returns the decoded
`UserSession`; it raises `InvalidToken` on any problem, which the app
turns into a 401. `require` builds a dependency that runs one gate from
`noodle.permissions` against the route's path parameters, so a handler
only runs after token verification and a single gate evaluation.
"""

from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from .config import settings
from .database import get_session
from .errors import InvalidToken, PermissionDenied
from .permissions import Gate, RequestContext, authorize
from .repositories import ModuleRepository
from .schemas import UserSession
from .tokens import TokenService

bearer_scheme = HTTPBearer(auto_error=False)

token_service = TokenService(
    settings.JWT_SIGNING_KEY,
    algorithm=settings.JWT_ALGORITHM,
    expire_hours=settings.JWT_EXPIRE_HOURS,
)


def get_token_service() -> TokenService:
    return token_service


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> UserSession:
    """FastAPI dependency that returns the verified session."""
    if credentials is None:
        raise InvalidToken("missing bearer token")
    return tokens.verify(credentials.credentials)


def _int_param(request: Request, *names: str) -> Optional[int]:
    for name in names:
        raw = request.path_params.get(name)
        if raw is None:
            continue
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise PermissionDenied()
    return None


def context_from_path(request: Request) -> RequestContext:
    """Build the gate context from route parameters only."""
    return RequestContext(
        username=request.path_params.get("username"),
        user_id=_int_param(request, "user_id", "student_id"),
        module_id=_int_param(request, "module_id"),
    )


def require(gate: Gate):
    """Return a dependency that authorizes the request with `gate`."""
    def dependency(
        request: Request,
        session: UserSession = Depends(get_current_session),
        db: Session = Depends(get_session),
    ) -> UserSession:
        return authorize(gate, session, context_from_path(request), ModuleRepository(db))

    dependency.__name__ = f"require_{gate.name}"
    return dependency
