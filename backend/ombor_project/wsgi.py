"""
WSGI config for Ombor.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ombor_project.settings')

application = get_wsgi_application()
