from fastapi import FastAPI
from catalog_search.core.config import get_settings
from catalog_search.core.errors import setup_error_handlers
from catalog_search.core.lifespan import lifespan
from catalog_search.api.v1.routers.products import router as products_router
from catalog_search.api.v1.routers.admin import router as admin_router
from catalog_search.api.v1.routers.health import router as health_router
from catalog_search.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging, os

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
setup_error_handlers(app)

# ------- CORS -------
# ALLOWED_ORIGINS from env (CSV), e.g. ALLOWED_ORIGINS="https://shop.example.com,https://www.shop.example.com"
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "")
allowed_origins = [o.strip() for o in allowed_origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,                        # keeps preflight simple
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],                            # or ["content-type","x-api-key","authorization"]
    max_age=86400,
)

# ------- Routes -------
app.include_router(health_router)
app.include_router(products_router)          # search, facets, listing
app.include_router(admin_router)             # backfill, migrate, product analytics
