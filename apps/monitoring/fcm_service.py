import json
import logging

import firebase_admin
from firebase_admin import credentials, exceptions, messaging
from django.conf import settings

logger = logging.getLogger(__name__)

_firebase_app = None


def get_firebase_app():
    """Initialise Firebase once from FCM_SERVICE_ACCOUNT_KEY; None when not configured."""
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    fcm_key_json = getattr(settings, 'FCM_SERVICE_ACCOUNT_KEY', None)
    if not fcm_key_json:
        logger.debug("FCM_SERVICE_ACCOUNT_KEY not set. Firebase not initialized.")
        return None

    try:
        cred = credentials.Certificate(json.loads(fcm_key_json))
        _firebase_app = firebase_admin.initialize_app(cred)
        logger.info("Firebase initialized successfully")
    except (ValueError, exceptions.FirebaseError) as e:
        logger.error(f"Error initializing Firebase: {e}")
        _firebase_app = None
    return _firebase_app


def send_fcm_to_topic(topic, title, body, data=None):
    """
    Send an FCM notification to every device subscribed to `topic`.
    :param data: additional payload; values are sent as strings
    :return: message ID if successful, None otherwise
    """
    if not get_firebase_app():
        logger.info(f"Firebase not initialized. Push to topic '{topic}' not sent.")
        return None

    message = messaging.Message(
        notification=messaging.Notification(
            title=title,
            body=body,
        ),
        topic=topic,
        data={k: str(v) for k, v in (data or {}).items() if v is not None},
    )

    try:
        response = messaging.send(message)
        logger.info(f"Successfully sent FCM message: {response}")
        return response
    except (ValueError, exceptions.FirebaseError) as e:
        logger.error(f"Error sending FCM message: {e}")
        return None
