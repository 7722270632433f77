import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import config
from models import db, client, init_models
from api.api_router import api_router
from services.errors import WellnessError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("wellness")

os.makedirs("static", exist_ok=True)
os.makedirs(config.UPLOAD_DIR, exist_ok=True)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models(db)
    logger.info("connected to %s", config.DB_NAME)
    yield
    await client.close()

app = FastAPI(
    lifespan=lifespan,
    title="wellness_backend",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def wellness_error_handler(request: Request, exc: WellnessError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, "%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "code": "internal_error", "message": "Internal server error"},
    )


app.add_exception_handler(WellnessError, wellness_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.mount("/static", StaticFiles(directory="static"), name="static")

app.include_router(api_router)

@app.get("/healthcheck", status_code=200)
async def healthcheck():
    return {"status": "ok"}
