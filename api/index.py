import logging
from app.main import app

# Setup basic logging to capture errors in Vercel Logs
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

logger.info("Vercel api/index.py initialized for TMDb browse service")

# Vercel Serverless Functions pick up the ASGI ``app`` exported here;
# /api/tmdb and /api/tmdb/categories are routed by the FastAPI app itself.
__all__ = ["app"]
