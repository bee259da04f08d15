import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .data_routes import router as data_router
from .logging_config import configure_logging
from .progress_routes import router as progress_router
from .services import shutdown_services


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await shutdown_services()


app = FastAPI(title="KFZlotti Data Service", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(data_router)
app.include_router(progress_router)

settings_snapshot = get_settings()
logger.info("Data service starting with dataset base URL: %s", settings_snapshot.data_base_url)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "data_base_url": settings.data_base_url}
