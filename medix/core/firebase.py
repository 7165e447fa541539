"""Firebase Admin SDK initialization for push delivery."""

import json
import os

import firebase_admin
from firebase_admin import credentials
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> None:
    """
    Initialize Firebase Admin SDK.

    Credentials are looked up in order: raw service-account JSON, a JSON file
    path, then Application Default Credentials.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("firebase_already_initialized")
        return

    try:
        cred = None

        if firebase_config_json:
            logger.info("firebase_init_from_json")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("firebase_init_from_file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("firebase_init_default_credentials")

    except Exception as e:
        logger.error("firebase_init_failed", error=str(e))
        raise


def is_firebase_initialized() -> bool:
    """Whether push delivery is configured for this process."""
    return _firebase_app is not None
