"""Bearer Token Decoding into ActorContext"""
import jwt
from typing import Any, Dict, Optional

from ..config.settings import settings
from ..domain.enums import UserRole
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


class TokenValidator:
    """
    Validate tokens issued by the identity service

    Tokens are signed with a shared secret; this service never issues them.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        audience: Optional[str] = None
    ):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm
        self._audience = audience if audience is not None else settings.jwt_audience

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        options = {"verify_exp": True, "verify_aud": bool(self._audience)}

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience or None,
                options=options
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """
        Extract actor context from validated token

        Expected claims: sub, name, role (Admin / FullUser / SimpleUser), role_id.
        """
        claims = self.validate_token(token)

        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("Token has no subject")

        try:
            role = UserRole(claims.get("role", UserRole.SIMPLE_USER.value))
        except ValueError:
            raise AuthenticationError(f"Unknown role in token: {claims.get('role')}")

        role_id = claims.get("role_id")

        return ActorContext(
            user_id=str(user_id),
            display_name=claims.get("name", str(user_id)),
            role=role,
            role_id=str(role_id) if role_id is not None else None
        )


# Global validator instance
_token_validator: Optional[TokenValidator] = None


def get_token_validator() -> TokenValidator:
    """Get global token validator instance"""
    global _token_validator
    if _token_validator is None:
        _token_validator = TokenValidator()
    return _token_validator


def get_current_user(authorization: str) -> ActorContext:
    """
    Get current user from authorization header

    Args:
        authorization: Authorization header value

    Returns:
        ActorContext
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    return get_token_validator().get_actor_context(authorization)
