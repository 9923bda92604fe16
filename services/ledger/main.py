# services/ledger/main.py
import logging
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

from services.ledger.routes import balance_router, checkout_router, webhook_router
from shared.cors import add_cors_to_app
from shared.database import close_db, init_db
from shared.middleware import add_middleware_to_app
from shared.rate_limiter import create_rate_limiter_from_env
from shared.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    os.environ.setdefault("SERVICE_NAME", "ledger")
    app.state.rate_limiter = create_rate_limiter_from_env(default_max=20)
    await init_db()
    await init_redis()
    yield
    # Shutdown
    await close_db()
    await close_redis()


app = FastAPI(
    title="CharacterForge Ledger Service",
    version="1.0.0",
    description="Credit purchases and balances for CharacterForge",
    lifespan=lifespan,
)

add_middleware_to_app(app=app, service_name="ledger", max_request_size=256 * 1024, log_requests=True)
add_cors_to_app(app)


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "ledger", "version": "1.0.0"}


# Include routers
app.include_router(checkout_router, tags=["checkout"])
app.include_router(webhook_router, tags=["webhooks"])
app.include_router(balance_router, tags=["balance"])


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8002))
    uvicorn.run("services.ledger.main:app", host="0.0.0.0", port=port, reload=True)
