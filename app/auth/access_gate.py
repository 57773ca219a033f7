"""Shared-secret access gate for administrative routes."""

from hmac import compare_digest
from logging import getLogger

from fastapi.security import HTTPAuthorizationCredentials
from pydantic import SecretStr

from app.configs import file_logger
from app.errors import AccessGateConfigurationError, AuthError

logger = file_logger(getLogger(__name__))

API_KEY_HEADER = "X-API-Key"


def extract_credential(
    api_key: str | None,
    bearer: HTTPAuthorizationCredentials | None,
) -> str | None:
    """
    Pick the credential from either accepted location.

    ``X-API-Key`` wins when both are sent; blank values count as absent.
    """
    if api_key and api_key.strip():
        return api_key.strip()
    if bearer is not None and bearer.credentials.strip():
        return bearer.credentials.strip()
    return None


class AccessGate:
    """
    Compares a presented credential with the single configured secret.

    There is no credential store and no per-caller identity: one static
    secret gates every protected operation.
    """

    def __init__(self, secret: SecretStr | str | None) -> None:
        if isinstance(secret, SecretStr):
            secret = secret.get_secret_value()
        self._secret = secret.encode("utf-8") if secret else None

    @property
    def configured(self) -> bool:
        return self._secret is not None

    def authenticate(self, credential: str | None) -> None:
        """
        Grant access or raise.

        Raises:
            AccessGateConfigurationError: If no secret is configured
            AuthError: ``missing`` without a credential, ``invalid`` on mismatch
        """
        if self._secret is None:
            logger.error("Admin API key is not configured; rejecting protected request")
            raise AccessGateConfigurationError
        if not credential:
            raise AuthError("missing")
        if not compare_digest(credential.encode("utf-8"), self._secret):
            logger.warning("Rejected request with an invalid API key")
            raise AuthError("invalid")
