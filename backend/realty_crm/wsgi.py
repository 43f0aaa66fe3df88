"""WSGI config for the Realty CRM lead distribution service."""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'realty_crm.settings')
application = get_wsgi_application()
