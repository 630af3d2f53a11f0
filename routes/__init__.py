from .health import health_bp
from .catalog import catalog_bp
from .availability import availability_bp
from .booking import booking_bp
from .stripe_webhook import webhook_bp
from .admin import admin_bp
