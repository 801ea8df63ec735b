"""FastAPI application factory for GTM-Infra."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from gtm_infra.common.config import get_settings
from gtm_infra.common.exceptions import InfraError, ProvisionNotFoundError, TierNotFoundError
from gtm_infra.common.schemas import ErrorResponse, HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from gtm_infra.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InfraError)
    async def infra_error_handler(request: Request, exc: InfraError):
        status_code = 404 if isinstance(exc, (ProvisionNotFoundError, TierNotFoundError)) else 400
        body = ErrorResponse(error=exc.message, code=exc.code)
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from gtm_infra.tiers.router import router as tier_router
    from gtm_infra.provisions.router import owners_router, router as provision_router
    from gtm_infra.wizard.router import router as wizard_router
    from gtm_infra.checkout.router import router as checkout_router

    prefix = settings.api_prefix
    app.include_router(tier_router, prefix=prefix, tags=["tiers"])
    app.include_router(owners_router, prefix=prefix, tags=["provisions"])
    app.include_router(provision_router, prefix=prefix, tags=["provisions"])
    app.include_router(wizard_router, prefix=prefix, tags=["wizard"])
    app.include_router(checkout_router, prefix=prefix, tags=["checkout"])

    return app
