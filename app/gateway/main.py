# =====================================================
# FILE: app/gateway/main.py
# User and admin application gateways
#
#   uvicorn app.gateway.main:user_app --port 3000
#   uvicorn app.gateway.main:admin_app --port 3002
# =====================================================

import logging

from app.core.config import settings
from app.gateway.proxy import create_gateway_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

user_app = create_gateway_app(settings.BACKEND_URL, "CLM User App")
admin_app = create_gateway_app(settings.BACKEND_URL, "CLM Admin App")
