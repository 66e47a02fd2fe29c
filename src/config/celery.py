"""
Configuración de Celery para el backend de remesas CLP-VES.

DJANGO_SETTINGS_MODULE se define antes de instanciar la app, de modo que
Celery lea la configuración de Django (prefijo CELERY_).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("remesas")

# Lee la configuración de Django con prefijo CELERY_
app.config_from_object("django.conf:settings", namespace="CELERY")

# Descubre tasks.py en cada app instalada
app.autodiscover_tasks()
