"""WSGI config for the VTU platform."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "vtu_platform.settings")

application = get_wsgi_application()
