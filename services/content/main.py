# services/content/main.py
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from services.content.routes import content_router
from shared.cors import add_cors_to_app
from shared.database import close_db, init_db
from shared.middleware import add_middleware_to_app
from shared.rate_limiter import create_rate_limiter_from_env


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.environ.setdefault("SERVICE_NAME", "content")
    app.state.rate_limiter = create_rate_limiter_from_env()
    await init_db()
    logger.info("Content service started successfully")
    yield

    logger.info("Shutting down content service...")
    await close_db()


app = FastAPI(
    title="CharacterForge Content Service",
    description="Character image generation with credit-safe billing",
    version="1.0.0",
    lifespan=lifespan,
)

add_middleware_to_app(app=app, service_name="content", max_request_size=64 * 1024, log_requests=True)

# CORS last so it runs first and answers preflight requests
add_cors_to_app(app)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "content", "version": "1.0.0"}


app.include_router(content_router, tags=["generation"])


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8006))
    uvicorn.run("services.content.main:app", host="0.0.0.0", port=port, reload=True)
