import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'app_backend.settings.settings')

# Push delivery goes through the channel layer; HTTP is the only protocol served here
application = get_asgi_application()
