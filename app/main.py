"""
Keygen API: symbol-store keys for ELF binaries over HTTP.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.routers import keygen

_log = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    description="Symbol-store index paths derived from ELF build-ids",
    version=settings.API_VERSION,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.include_router(keygen.router, prefix="/keygen", tags=["keygen"])


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    _log.warning(
        "422 on %s %s: %s", request.method, request.url.path, exc.errors()[:3],
    )
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "keygen-api", "version": settings.API_VERSION}


@app.get("/")
async def root():
    return {"message": settings.API_TITLE, "docs": "/docs", "health": "/health"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT)
