"""
Authentication module for Task API.
Resolves the caller by handing the bearer token to the Auth Service.
"""
import logging
from typing import Optional, Dict, Any
import httpx
from fastapi import HTTPException, Request, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

# Configure logging
logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(
    scheme_name="Bearer Token",
    description="JWT Bearer token from Auth Service",
    auto_error=False
)


class AuthServiceUnavailable(Exception):
    """Auth Service could not be reached or answered unexpectedly."""


class CurrentUser:
    """Represents the current authenticated user."""

    def __init__(self, user_id: int, email: Optional[str] = None, username: Optional[str] = None, **kwargs):
        self.user_id = user_id
        self.email = email
        self.username = username
        self.extra_data = kwargs

    def __str__(self):
        return f"User(id={self.user_id}, email={self.email})"

    def __repr__(self):
        return self.__str__()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurrentUser":
        """Create CurrentUser from dictionary."""
        if data.get("id") is None:
            raise ValueError("Auth Service response has no user id")
        return cls(
            user_id=data.get("id"),
            email=data.get("email"),
            username=data.get("username"),
            **{k: v for k, v in data.items() if k not in ["id", "email", "username"]}
        )


class AuthService:
    """Service client for Auth Service integration."""

    def __init__(self, base_url: str, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            transport=self.transport
        )

    async def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify JWT token with Auth Service.

        Args:
            token: JWT token to verify

        Returns:
            dict: User information if token is valid, None if it was rejected

        Raises:
            AuthServiceUnavailable: If the Auth Service cannot answer
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }

        try:
            async with self._client() as client:
                logger.debug("Verifying token with Auth Service")
                response = await client.get(
                    f"{self.base_url}/auth/verify",
                    headers=headers
                )
        except httpx.TimeoutException as e:
            logger.error("Auth Service timeout")
            raise AuthServiceUnavailable("Auth Service timeout") from e
        except httpx.HTTPError as e:
            logger.error(f"Auth Service connection error: {e}")
            raise AuthServiceUnavailable(str(e)) from e

        if response.status_code == 200:
            logger.debug("Token verification successful")
            return response.json()
        if response.status_code in (401, 403):
            logger.warning("Token verification failed: invalid token")
            return None

        logger.error(f"Auth Service returned status {response.status_code}")
        raise AuthServiceUnavailable(f"Auth Service returned status {response.status_code}")

    async def health_check(self) -> bool:
        """
        Check if Auth Service is healthy.

        Returns:
            bool: True if Auth Service is healthy
        """
        try:
            async with self._client(timeout=10) as client:
                response = await client.get(f"{self.base_url}/health")
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Auth Service health check failed: {e}")
            return False


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """
    Dependency to get current authenticated user.

    Args:
        request: Incoming request, used to reach the app's AuthService
        credentials: HTTP Bearer credentials from request

    Returns:
        CurrentUser: Current authenticated user

    Raises:
        HTTPException: 401 if the token is missing or invalid,
            503 if the Auth Service is unavailable
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    auth_service: AuthService = request.app.state.auth_service

    try:
        user_info = await auth_service.verify_token(credentials.credentials)
    except AuthServiceUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable"
        )

    if not user_info:
        logger.warning("Token verification failed")
        raise _unauthorized("Invalid or expired token")

    try:
        current_user = CurrentUser.from_dict(user_info)
    except ValueError as e:
        logger.error(f"Error creating CurrentUser: {e}")
        raise _unauthorized("Could not validate user")

    logger.debug(f"Authenticated user: {current_user}")
    return current_user
