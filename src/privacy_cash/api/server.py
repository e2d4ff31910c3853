import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from privacy_cash.api.routes import router
from privacy_cash.core.config import ClientConfig
from privacy_cash.core.errors import ApiError, ConfirmationTimeout, PrivacyCashError
from privacy_cash.core.wallet import Wallet
from privacy_cash.pool.client import PrivacyCashClient

logger = logging.getLogger("privacy_cash.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Load configuration
    secret_key = os.getenv("PRIVACY_CASH_SECRET_KEY")

    if not secret_key:
        logger.warning("PRIVACY_CASH_SECRET_KEY not set. Balance and transaction endpoints will fail.")
        app.state.privacy_client = None
        yield
        return

    config = ClientConfig.from_env()
    wallet = Wallet.from_secret_key(secret_key)
    privacy_client = PrivacyCashClient(wallet, config=config)

    # Attach to app state
    app.state.privacy_client = privacy_client

    yield
    await privacy_client.aclose()


app = FastAPI(
    title="Privacy Cash API",
    description="REST API wrapping the Privacy Cash shielded pool client",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc)},
    )


@app.exception_handler(ConfirmationTimeout)
async def confirmation_timeout_handler(request: Request, exc: ConfirmationTimeout):
    return JSONResponse(
        status_code=504,
        content={"detail": str(exc)},
    )


@app.exception_handler(PrivacyCashError)
async def privacy_cash_error_handler(request: Request, exc: PrivacyCashError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}
