import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vigil import __version__
from vigil.errors import VigilError
from vigil.settings import API_DEBUG, API_HOST, API_PORT, settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Vigil API",
    version=__version__,
    description="HTTP layer over the compliance-record lifecycle engine: listings, alerts and lifecycle actions.",
    debug=API_DEBUG,
)

# --- CORS ----------------------------------------------------------
# Dev origins for the dashboard front-end; tighten in production.
origins = [
    "http://localhost:5173",    # Vite dev server default port
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


# --- Errors ----------------------------------------------------------
@app.exception_handler(VigilError)
async def vigil_error_handler(request: Request, exc: VigilError):
    """400 validation, 404 not found, 409 conflict, 422 illegal transition."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


# --- Include Routers ----------------------------------------------------------
from .records import router as records_router  # noqa: E402
from .alerts import router as alerts_router  # noqa: E402

app.include_router(records_router)
app.include_router(alerts_router)


# ---------- health-check ----------
@app.get("/")
def root():
    return {"status": "ok", "msg": "Vigil API is alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=API_HOST, port=API_PORT, reload=API_DEBUG)
