from .app import create_app
from .config import GatewaySettings, get_settings

__all__ = ["GatewaySettings", "create_app", "get_settings"]
