import os
from celery import Celery

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'calamity_config.settings')

app = Celery('calamity_config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
