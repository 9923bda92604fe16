# services/identity/main.py
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

from services.identity.routes import account_router, api_key_router
from shared.cors import add_cors_to_app
from shared.database import close_db, init_db
from shared.middleware import add_middleware_to_app
from shared.rate_limiter import create_rate_limiter_from_env


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    os.environ.setdefault("SERVICE_NAME", "identity")
    app.state.rate_limiter = create_rate_limiter_from_env(default_max=5)
    await init_db()
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title="CharacterForge Identity Service",
    version="1.0.0",
    description="API key issuance and account management for CharacterForge",
    lifespan=lifespan,
)

add_middleware_to_app(app=app, service_name="identity", max_request_size=16 * 1024, log_requests=True)
add_cors_to_app(app)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "identity", "version": "1.0.0"}


app.include_router(api_key_router, tags=["api-keys"])
app.include_router(account_router, tags=["account"])


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8001))
    uvicorn.run("services.identity.main:app", host="0.0.0.0", port=port, reload=True)
