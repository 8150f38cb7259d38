import logging

from celery import shared_task

from .devices import DeviceRegistry

logger = logging.getLogger(__name__)


@shared_task(name="simulate_device_health")
def simulate_device_health():
    """
    Periodic task: drains device batteries and flips connectivity at random.
    Runs in the Celery worker, so it works on the stored registry only.
    """
    registry = DeviceRegistry()
    devices = registry.list()
    if not devices:
        logger.debug("No registered devices; skipping device health simulation.")
        return "No devices registered."

    changed = registry.simulate_health()
    logger.info(f"Device health simulation updated {changed} device fields across {len(devices)} devices")
    return f"Device health simulated. Changes: {changed}."
