"""Firebase Admin SDK initialization and utilities."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials, storage
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None,
    firebase_config_json: str | None = None,
    storage_bucket: str | None = None,
) -> None:
    """
    Initialize Firebase Admin SDK.

    Credentials are looked up in order: raw JSON string, service account
    file, then application default credentials.

    Args:
        firebase_credentials_path: Optional path to service account JSON file
        firebase_config_json: Optional raw JSON string of service account
        storage_bucket: Bucket used for uploaded payment proofs
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("firebase_already_initialized")
        return

    options = {"storageBucket": storage_bucket} if storage_bucket else None

    try:
        cred = None

        if firebase_config_json:
            logger.info("firebase_init_from_json")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("firebase_init_from_file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred, options)
        else:
            _firebase_app = firebase_admin.initialize_app(options=options)
            logger.info("firebase_init_default_credentials")

    except Exception as e:
        logger.error("firebase_init_failed", error=str(e))
        raise


def get_firebase_app() -> firebase_admin.App:
    """
    Get the Firebase app instance.

    Raises:
        RuntimeError: If Firebase is not initialized
    """
    if _firebase_app is None:
        raise RuntimeError("Firebase not initialized. Call initialize_firebase() first.")
    return _firebase_app


def get_storage_bucket():
    """Get the default storage bucket of the initialized app."""
    return storage.bucket(app=get_firebase_app())


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token.

    Args:
        id_token: Firebase ID token from the client

    Returns:
        Decoded token containing user information

    Raises:
        ValueError: If token is invalid, expired or cannot be verified
    """
    try:
        decoded_token = auth.verify_id_token(id_token, clock_skew_seconds=10)
    except auth.InvalidIdTokenError as e:
        logger.warning("firebase_token_invalid", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}") from e
    except Exception as e:
        logger.error("firebase_token_verification_failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}") from e

    logger.info("firebase_token_verified", uid=decoded_token.get("uid"))
    return decoded_token
