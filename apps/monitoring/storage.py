# apps/monitoring/storage.py
import copy
import json
import logging

from .models import StoredState

logger = logging.getLogger(__name__)

# Logical keys for the persisted blobs
STUDENTS_KEY = 'emergency_students'
DEVICES_KEY = 'emergency_devices'
EVENTS_KEY = 'emergency_events'
SETTINGS_KEY = 'emergency_settings'
ALERTS_KEY = 'emergency_alerts'
CALAMITY_ACTIVE_KEY = 'emergency_calamity_active'


def load_state(key, default):
    """
    Load the JSON blob stored under `key`.
    Returns a copy of `default` when the blob is missing, not valid JSON,
    or not of the same type as `default`. Never raises on bad data.
    """
    row = StoredState.objects.filter(key=key).first()
    if row is None or not row.payload:
        return copy.deepcopy(default)

    try:
        value = json.loads(row.payload)
    except (TypeError, ValueError):
        logger.warning(f"Stored state '{key}' is not valid JSON. Falling back to defaults.")
        return copy.deepcopy(default)

    if default is not None and not isinstance(value, type(default)):
        logger.warning(
            f"Stored state '{key}' has type {type(value).__name__}, expected {type(default).__name__}. "
            f"Falling back to defaults."
        )
        return copy.deepcopy(default)
    return value


def save_state(key, value):
    payload = json.dumps(value, default=str)
    StoredState.objects.update_or_create(key=key, defaults={'payload': payload})
    logger.debug(f"Saved state '{key}' ({len(payload)} bytes)")


def clear_state(*keys):
    queryset = StoredState.objects.all()
    if keys:
        queryset = queryset.filter(key__in=keys)
    deleted, _ = queryset.delete()
    logger.info(f"Cleared {deleted} stored state entries")
    return deleted
