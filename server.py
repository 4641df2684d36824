# Deploy on Replit: Set secrets and run 'uvicorn server:app --host=0.0.0.0 --port=8000'
import logging
import os

from dotenv import load_dotenv

from slack_search_proxy.api import create_app
from slack_search_proxy.config import load_settings

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "info").upper(), handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("slack_search_proxy")

settings = load_settings()

if not settings.admin_key:
    logger.warning("ADMIN_KEY is not set. Admin endpoints will reject every request.")
if not settings.redis_configured:
    logger.warning("REDIS_URL is not set. The user registry will reset on restart.")

app = create_app(settings)

__all__ = ["app"]
