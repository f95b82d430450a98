from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .shared.config import settings
from .shared.errors import StoreUnavailable
from .shared.logging import configure_logging
from .auth.router import router as auth_router, users_router
from .conferences.router import router as conference_router
from .locks.router import router as locks_router

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="ConfEdit API", version="0.1.0", openapi_url=f"{settings.API_PREFIX}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailable)
def store_unavailable(_: Request, exc: StoreUnavailable):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get(f"{settings.API_PREFIX}/healthz")
def healthz():
    return {"status": "ok", "app": "ConfEdit"}


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(conference_router)
app.include_router(locks_router)
