# makerbook API entry point
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .db import init_db
from .settings import settings
from .routers.ready import router as ready_router
from .routers.extract import router as extract_router
from .routers.tutorials import router as tutorials_router
from .routers.recipes import router as recipes_router
from .routers.checklist import router as checklist_router
from .routers.shopping_list import router as shopping_list_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("makerbook")

# Rate limiter (per-IP)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
    enabled=settings.rate_limit_enabled,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        init_db()
        logger.info("Database tables ready")
    if not settings.refyne_api_url or not settings.refyne_api_key:
        logger.warning("Extraction service not configured; /api/extract will answer 500")
    yield


app = FastAPI(title="makerbook API", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(extract_router, prefix="/api", tags=["extract"])
app.include_router(tutorials_router, prefix="/api", tags=["tutorials"])
app.include_router(recipes_router, prefix="/api", tags=["recipes"])
app.include_router(checklist_router, prefix="/api/checklist", tags=["checklist"])
app.include_router(shopping_list_router, prefix="/api/shopping-list", tags=["shopping-list"])
