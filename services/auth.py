import hashlib
import hmac
import secrets
from typing import Optional

from pydantic import BaseModel

from errors import Unauthorized
from logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_LENGTH = 32


class ScopedIdentity(BaseModel):
    """A caller's authorized relationship to exactly one room."""

    room_id: str
    token: str


class CredentialIssuer:
    """Issues and verifies per-room credentials of the form ``<token>.<signature>``.

    The signature is an HMAC-SHA256 of ``room_id:token``, so a credential only
    ever authorizes the room it was issued for. Verification needs no storage.
    """

    def __init__(self, secret: Optional[str] = None):
        if not secret:
            logger.warning("AUTH_SECRET is not set, using a random per-process key")
            secret = secrets.token_hex(32)
        self._key = secret.encode("utf-8")

    def _sign(self, room_id: str, token: str) -> str:
        digest = hmac.new(self._key, f"{room_id}:{token}".encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()[:SIGNATURE_LENGTH]

    def issue(self, room_id: str) -> str:
        token = secrets.token_urlsafe(16)
        return f"{token}.{self._sign(room_id, token)}"

    def verify(self, room_id: str, credential: Optional[str]) -> Optional[str]:
        """Return the token carried by ``credential`` if it is valid for ``room_id``."""
        if not credential or credential.count(".") != 1:
            return None
        token, signature = credential.split(".")
        if not token or not hmac.compare_digest(signature, self._sign(room_id, token)):
            return None
        return token


class AuthorizationGate:
    def __init__(self, issuer: CredentialIssuer):
        self.issuer = issuer

    def authorize(self, room_id: str, credential: Optional[str]) -> ScopedIdentity:
        if not credential:
            logger.warning(f"Missing credential for room {room_id}")
            raise Unauthorized(room_id, "missing credential")
        token = self.issuer.verify(room_id, credential)
        if token is None:
            logger.warning(f"Rejected credential for room {room_id}")
            raise Unauthorized(room_id)
        return ScopedIdentity(room_id=room_id, token=token)
