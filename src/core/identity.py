"""
Session identity resolution.

Verifies the signed session token carried in the auth cookie and maps it to
the donor name used on donation records. Any failure means an anonymous
donor; identity problems never block an assistant request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog

from src.config import Settings, settings as default_settings
from src.data.models import Identity
from src.data.store import CampaignStore

logger = structlog.get_logger()

ANONYMOUS_DONOR = "Anonymous"


class IdentityProvider:
    """Resolves an optional current user from an opaque session token."""

    def __init__(self, store: CampaignStore, config: Optional[Settings] = None):
        self._store = store
        self._settings = config or default_settings
        self._logger = logger.bind(component="identity")

    def create_token(self, user_id: str, expires_in: timedelta = timedelta(days=7)) -> str:
        """Sign a session token for `user_id`."""
        now = datetime.now(timezone.utc)
        payload = {"sub": user_id, "iat": now, "exp": now + expires_in}
        return jwt.encode(payload, self._settings.jwt_secret, algorithm=self._settings.jwt_algorithm)

    async def resolve(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
            )
        except jwt.InvalidTokenError as e:
            self._logger.info("session_token_rejected", error=str(e))
            return None

        user_id = payload.get("sub") or payload.get("userId")
        if not user_id:
            return None
        user = await self._store.find_user_by_id(str(user_id))
        if user is None:
            return None
        return Identity(user_id=user.id, display_name=user.username)


def donor_name_for(identity: Optional[Identity]) -> str:
    return identity.display_name if identity and identity.display_name else ANONYMOUS_DONOR
