# apps/monitoring/notifications.py
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.dispatch import receiver

from .fcm_service import send_fcm_to_topic
from .signals import snapshot_refreshed, sos_alert_raised

logger = logging.getLogger(__name__)


def dashboard_group_name():
    return getattr(settings, 'DASHBOARD_GROUP_NAME', 'calamity_dashboard')


def broadcast_to_dashboard(event_type, payload):
    """Push a message to every connected dashboard. Failures are logged, not raised."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug("No channel layer configured; dashboard broadcast skipped.")
        return False
    try:
        async_to_sync(channel_layer.group_send)(
            dashboard_group_name(),
            {"type": event_type, "payload": payload},
        )
    except Exception as e:
        logger.error(f"Dashboard broadcast '{event_type}' failed: {e}", exc_info=True)
        return False
    return True


@receiver(sos_alert_raised)
def relay_sos_alert(sender, alert, person=None, play_sound=True, **kwargs):
    """
    Sends a new SOS alert to the dashboards (which play the alert sound when
    `play_sound` is set) and to the responders' FCM topic.
    """
    person_name = alert.get('person_name') or alert.get('person_id')
    ws_payload = dict(alert)
    ws_payload['play_sound'] = play_sound
    broadcast_to_dashboard('sos.alert', ws_payload)

    body = f"SOS from {person_name}."
    if alert.get('latitude') is not None and alert.get('longitude') is not None:
        body += f" Location: lat {alert['latitude']:.6f}, lon {alert['longitude']:.6f}."
    send_fcm_to_topic(
        getattr(settings, 'FCM_RESPONDER_TOPIC', 'calamity-responders'),
        title=f"SOS Alert: {person_name}",
        body=body,
        data={
            'alert_type': 'SOS',
            'alert_id': alert.get('id'),
            'person_id': alert.get('person_id'),
            'latitude': alert.get('latitude'),
            'longitude': alert.get('longitude'),
        },
    )


@receiver(snapshot_refreshed)
def relay_snapshot(sender, snapshot, **kwargs):
    broadcast_to_dashboard('dashboard.snapshot', snapshot)
