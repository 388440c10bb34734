from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from testmgmt.config import settings
from testmgmt.database import init_db
from testmgmt.logging_config import configure_logging
from testmgmt.routers import auth, health, users


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


def create_app(initialize_db: bool = True) -> FastAPI:
    configure_logging(settings.log_level)
    application = FastAPI(
        title="AIQUAA Test Management API",
        lifespan=lifespan if initialize_db else None,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(health.router, prefix="/api")
    application.include_router(auth.router, prefix="/api")
    application.include_router(users.router, prefix="/api")

    @application.get("/")
    def root():
        return {"status": "Backend running"}

    return application


app = create_app()
