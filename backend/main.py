# backend/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from config import settings
from database import init_db
from utils.errors import register_exception_handlers

# Router imports
from routes.auth import router as auth_router
from routes.products import router as products_router
from routes.categories import router as categories_router
from routes.suppliers import router as suppliers_router
from routes.stock import router as stock_router
from routes.analytics import router as analytics_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialization
init_db()

app = FastAPI(title="Inventory API", version="1.0.0")

# CORS Configuration
# Local frontend origins from settings, plus the deployed frontend when configured
origins = list(settings.CORS_ORIGINS)
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Router registration
for router in (
    auth_router,
    products_router,
    categories_router,
    suppliers_router,
    stock_router,
    analytics_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/")
def read_root():
    return {"message": "Inventory API is running", "version": app.version}


@app.get("/health")
def health():
    return {"status": "ok"}

logger.info("Inventory API ready, routes mounted under %s", settings.API_PREFIX)
