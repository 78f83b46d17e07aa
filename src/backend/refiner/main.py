"""
Prompt Refiner — FastAPI Backend
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from refiner.api import health, refine
from refiner.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("=== Prompt Refiner starting ===")
    logger.info(f"  oracle backend : {settings.oracle_backend}")
    if settings.oracle_backend == "api":
        logger.info(f"  oracle endpoint: {settings.oracle_base_url or '(empty)'} model={settings.oracle_model_id}")
        logger.info(f"  oracle api key : {'set' if settings.oracle_api_key else '(empty)'}")
        if not settings.oracle_base_url:
            logger.warning("ORACLE_BASE_URL is empty -- oracle API calls will go to localhost!")
    else:
        logger.info(f"  oracle command : {settings.oracle_cli_command}")
    logger.info(f"  default mode   : {settings.default_mode}")
    yield


app = FastAPI(
    title="Prompt Refiner",
    description="Budget-constrained iterative prompt refinement over an LLM oracle",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(refine.router, prefix="/api", tags=["refine"])
