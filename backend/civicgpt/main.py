import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .config import get_settings
from .clients.base import BaseAPIClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting CivicGPT API...")

    settings = get_settings()
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set. OpenAI models and semantic search will be unavailable.")
    if not (settings.supabase_url and settings.supabase_service_key):
        logger.warning("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set. Answers will not be grounded in the bill database.")
    if not settings.nys_api_key:
        logger.warning("NYS_LEGISLATION_API_KEY is not set. Live legislature data will be skipped.")

    logger.info(f"Default model: {settings.default_model}; vector backend: {settings.vector_backend}")
    logger.info("API ready!")

    yield

    logger.info("Shutting down CivicGPT API...")
    await BaseAPIClient.close_shared_clients()


app = FastAPI(
    title="CivicGPT API",
    description="Grounded chat over New York State legislation, budgets and contracts",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": "CivicGPT API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("civicgpt.main:app", host="0.0.0.0", port=port, reload=True)
