"""
Admin authentication gate.

Sessions are stateless: the token handed to the admin is
``identity|hex(HMAC-SHA256(secret, identity))``. Anyone holding the secret
can verify it without server-side storage. Rotating the secret invalidates
every issued token at once; there is no per-token revocation and no expiry.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass

from flask_babel import lazy_gettext as _l

from tracker.errors import ConfigurationError, Unauthorized

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "|"


@dataclass(frozen=True)
class AdminPrincipal:
    identity: str


class AuthGate:
    def __init__(self, settings):
        if not settings.session_secret:
            raise ConfigurationError("SESSION_SECRET must be set to serve admin traffic")
        if not settings.password:
            raise ConfigurationError("ADMIN_PASSWORD must be set to serve admin traffic")
        self._identity = settings.username
        self._password = settings.password
        self._secret = settings.session_secret.encode("utf-8")

    def sign(self, value: str) -> str:
        return hmac.new(self._secret, value.encode("utf-8"), hashlib.sha256).hexdigest()

    def issue(self, identity, password) -> str:
        """Return a session token for valid admin credentials.

        Raises:
            Unauthorized: identity or password does not match the configured
                admin. Nothing is recorded about the failed attempt.
        """
        if not isinstance(identity, str) or not isinstance(password, str):
            raise Unauthorized(_l("Invalid username or password"))
        # Evaluate both comparisons so timing does not reveal which one failed.
        identity_ok = hmac.compare_digest(identity.encode("utf-8"), self._identity.encode("utf-8"))
        password_ok = hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        if not (identity_ok and password_ok):
            raise Unauthorized(_l("Invalid username or password"))
        return f"{identity}{TOKEN_SEPARATOR}{self.sign(identity)}"

    def verify(self, token) -> AdminPrincipal:
        if not token or not isinstance(token, str):
            raise Unauthorized()
        identity, sep, signature = token.partition(TOKEN_SEPARATOR)
        if not sep or identity != self._identity:
            raise Unauthorized()
        if not hmac.compare_digest(self.sign(identity).encode("ascii"), signature.encode("utf-8")):
            logger.warning("Rejected admin token with bad signature")
            raise Unauthorized(_l("Invalid session"))
        return AdminPrincipal(identity=identity)
