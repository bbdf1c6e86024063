"""
Identity verification and FastAPI authentication dependencies.

Credentials are ID tokens issued by Firebase Authentication. The verifier is
built once at startup and stored on ``app.state.identity_verifier``; when it
cannot be initialised the attribute is None and every auth-gated route
responds 503 instead of the whole process failing to start.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import firebase_admin
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError

from .error_responses import (
    ErrorMessages,
    raise_service_unavailable,
    raise_unauthorized,
)

logger = logging.getLogger(__name__)

# The raw Authorization header; the "Bearer " prefix is optional
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

BEARER_PREFIX = "bearer "


class InvalidCredentialError(Exception):
    """Raised when a credential cannot be verified."""


class IdentityProviderError(Exception):
    """Raised when the identity provider could not be reached or failed."""


@dataclass(frozen=True)
class VerifiedIdentity:
    """Claims extracted from a verified credential."""

    subject_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> VerifiedIdentity:
        """
        Verify ``token``.

        Raises:
            InvalidCredentialError: If the token is malformed, expired or revoked
            IdentityProviderError: If the provider cannot answer right now
        """
        ...


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens with the Admin SDK."""

    APP_NAME = "dailytest"

    def __init__(self, app: "firebase_admin.App"):
        self._app = app

    @classmethod
    def from_service_account(
        cls, service_account_json: str, project_id: Optional[str] = None
    ) -> "FirebaseIdentityVerifier":
        """
        Initialise a Firebase app from a service account JSON string.

        Raises:
            ValueError: If the service account is missing or malformed
        """
        if not service_account_json:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT is not configured")

        info: Dict[str, Any] = json.loads(service_account_json)
        cred = credentials.Certificate(info)
        options = {"projectId": project_id} if project_id else None
        app = firebase_admin.initialize_app(cred, options, name=cls.APP_NAME)
        return cls(app)

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self._app)
        except (
            ValueError,
            firebase_auth.InvalidIdTokenError,
            firebase_auth.ExpiredIdTokenError,
            firebase_auth.RevokedIdTokenError,
            firebase_auth.UserDisabledError,
        ) as e:
            raise InvalidCredentialError(str(e)) from e
        except FirebaseError as e:
            # CertificateFetchError and transport failures
            raise IdentityProviderError(str(e)) from e

        return VerifiedIdentity(
            subject_id=decoded["uid"],
            display_name=decoded.get("name"),
            email=decoded.get("email"),
            photo_url=decoded.get("picture"),
        )

    def close(self) -> None:
        firebase_admin.delete_app(self._app)


def extract_token(header_value: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an Authorization header value.

    Accepts both "Bearer <token>" and a bare token. Returns None for an
    empty header.
    """
    if not header_value:
        return None
    value = header_value.strip()
    if value.lower().startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX):].strip()
    return value or None


def get_identity_verifier(request: Request) -> IdentityVerifier:
    """
    Dependency returning the application's identity verifier.

    Raises:
        HTTPException: 503 if the identity provider failed to initialise
    """
    verifier = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        raise_service_unavailable(ErrorMessages.IDENTITY_UNAVAILABLE)
    return verifier


def get_current_identity(
    authorization: Optional[str] = Depends(authorization_header),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> VerifiedIdentity:
    """
    Get the verified identity of the caller.

    Raises:
        HTTPException: 401 if the token is missing or invalid,
            503 if the identity provider is unavailable
    """
    token = extract_token(authorization)
    if token is None:
        raise_unauthorized(ErrorMessages.MISSING_TOKEN)

    try:
        return verifier.verify(token)
    except InvalidCredentialError as e:
        logger.info(f"Rejected credential: {e}")
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)
    except IdentityProviderError as e:
        logger.error(f"Identity provider error during token verification: {e}")
        raise_service_unavailable(ErrorMessages.IDENTITY_UNAVAILABLE)
