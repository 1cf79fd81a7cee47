"""
Firebase integration for Roho
Firestore client bootstrap and collection names
"""
import base64
import json
import logging
import os
from datetime import datetime, timezone
from functools import lru_cache

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime"""
    return datetime.now(tz=timezone.utc)


def _load_credentials() -> credentials.Certificate:
    """
    Resolve service account credentials.
    Supports three sources, checked in order:
    1. GOOGLE_APPLICATION_CREDENTIALS - path to a JSON key file (recommended)
    2. FIREBASE_CREDENTIALS_JSON - inline JSON string
    3. FIREBASE_SERVICE_ACC_BASE64 - base64 encoded JSON (container secrets)
    """
    google_creds_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if google_creds_path:
        logger.info(f"Loading Firebase credentials from GOOGLE_APPLICATION_CREDENTIALS: {google_creds_path}")
        return credentials.Certificate(google_creds_path)

    firebase_creds_json = os.getenv("FIREBASE_CREDENTIALS_JSON")
    if firebase_creds_json:
        logger.info("Loading Firebase credentials from FIREBASE_CREDENTIALS_JSON environment variable")
        return credentials.Certificate(json.loads(firebase_creds_json))

    firebase_creds_b64 = os.getenv("FIREBASE_SERVICE_ACC_BASE64")
    if firebase_creds_b64:
        logger.info("Loading Firebase credentials from FIREBASE_SERVICE_ACC_BASE64 environment variable")
        decoded = base64.b64decode(firebase_creds_b64).decode("utf-8")
        return credentials.Certificate(json.loads(decoded))

    raise ValueError(
        "Firebase credentials not found. Please set one of:\n"
        "  - GOOGLE_APPLICATION_CREDENTIALS=/path/to/firebase-key.json (recommended), or\n"
        "  - FIREBASE_CREDENTIALS_JSON='{...}' (inline JSON string), or\n"
        "  - FIREBASE_SERVICE_ACC_BASE64=<base64 of the key file>"
    )


@lru_cache(maxsize=1)
def get_db() -> firestore.Client:
    """
    Return the process-wide Firestore client, initializing Firebase on first use.
    Stores receive this client through their constructor; nothing connects at import time.
    """
    try:
        if not firebase_admin._apps:
            firebase_admin.initialize_app(_load_credentials())
        client = firestore.client()
        logger.info("✅ Firebase initialized successfully")
        return client
    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase: {e}")
        raise


# ==================== Collection References ====================
class Collections:
    """Firestore collection names"""
    USERS = "users"
    ORDERS = "orders"
    RIDER_QUEUE = "rider_queue"
    RIDER_BOOKINGS = "rider_bookings"
    RIDER_PAYMENTS = "rider_payments"
    RIDERS = "riders"
    KITCHEN_NOTIFICATIONS = "kitchen_notifications"

    # Operations
    JOB_RUNS = "job_runs"
