# FILE: hidden_gems/server.py
import logging

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from hidden_gems.core.config import APP_NAME, CORS_ORIGINS
from hidden_gems.core.database import engine, create_tables
from hidden_gems.core.errors import register_error_handlers

from hidden_gems.api.root import router as root_router
from hidden_gems.api.auth import router as auth_router
from hidden_gems.api.oauth import router as oauth_router
from hidden_gems.api.gems import router as gems_router
from hidden_gems.api.ratings import router as ratings_router
from hidden_gems.api.payments import router as payments_router
from hidden_gems.api.notifications import router as notifications_router, ws_router as notifications_ws_router
from hidden_gems.api.traffic import router as traffic_router
from hidden_gems.api.admin import router as admin_router
from hidden_gems.api.media import router as media_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("hidden-gems")

app = FastAPI(title=f"{APP_NAME} API")

register_error_handlers(app)

app.include_router(root_router)
app.include_router(auth_router)
app.include_router(oauth_router)
app.include_router(gems_router)
app.include_router(ratings_router)
app.include_router(payments_router)
app.include_router(notifications_router)
app.include_router(notifications_ws_router)
app.include_router(traffic_router)
app.include_router(admin_router)
app.include_router(media_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    await create_tables()
    logger.info(f"{APP_NAME} API started")


@app.on_event("shutdown")
async def shutdown():
    await engine.dispose()
