import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import init_db
from .routers import analytics, bank_links, budgets, imported_transactions, meta, transactions
from .schemas import HealthResponse

VERSION = "0.1.0"

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # ── Startup ───────────────────────────────────────────────────────────────
    init_db()
    logger.info("Budgetspace API %s started", VERSION)
    yield
    # ── Shutdown (nothing to release; sessions are per request) ──────────────


app = FastAPI(
    title="Budgetspace",
    description="Budget periods, transaction attribution, bank import reconciliation and analytics.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError):
    # Malformed input is a 400 with the same {code, message} body as engine errors.
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "errors": jsonable_encoder(exc.errors()),
            }
        },
    )


app.include_router(meta.router)
app.include_router(budgets.router)
app.include_router(transactions.router)
app.include_router(bank_links.router)
app.include_router(imported_transactions.router)
app.include_router(analytics.router)


@app.get("/health", response_model=HealthResponse, tags=["meta"])
def health():
    return {"status": "ok", "version": VERSION}
