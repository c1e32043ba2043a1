from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI

from api.campaign import router as campaign_router
from config.logging_config import setup_logging
from core.infrastructure.lifecycle import lifespan
from core.infrastructure.middleware import MetaAuthMiddleware
from core.infrastructure.request_logging_middleware import RequestLoggingMiddleware
from core.metadata import APP_DESCRIPTION, APP_TITLE, VERSION
from exceptions.handlers import setup_exception_handlers

setup_logging()

app = FastAPI(title=APP_TITLE, description=APP_DESCRIPTION, version=VERSION, lifespan=lifespan)

app.add_middleware(MetaAuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(campaign_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


setup_exception_handlers(app)
