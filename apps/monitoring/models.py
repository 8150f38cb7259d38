from django.db import models


class StoredState(models.Model):
    """
    Opaque key/value blob used to persist the monitoring state
    (roster, devices, events, settings, alerts) between restarts.
    """
    key = models.CharField(max_length=100, unique=True)
    payload = models.TextField(blank=True, default='')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        ordering = ['key']
        verbose_name = "Stored state"
        verbose_name_plural = "Stored state"
