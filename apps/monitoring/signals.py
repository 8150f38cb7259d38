# apps/monitoring/signals.py
from django.dispatch import Signal

# Sent by the alert manager whenever a new SOS alert is raised.
# kwargs: alert (dict), person (dict or None), play_sound (bool)
sos_alert_raised = Signal()

# Sent at the end of every refresh cycle. kwargs: snapshot (dict)
snapshot_refreshed = Signal()
