from .auth import auth_bp
from .bills import bills_bp
from .dashboard import dashboard_bp
from .providers import providers_bp
from .settings import settings_bp
from .tenants import tenants_bp

ALL_BLUEPRINTS = [auth_bp, providers_bp, tenants_bp, bills_bp, dashboard_bp, settings_bp]
