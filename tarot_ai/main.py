import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .cards import validate_deck
from .errors import TarotError, ValidationError
from .routes.checkout_routes import router as checkout_router
from .routes.pages import router as pages_router
from .routes.tarot_routes import router as tarot_router
from .routes.wizard_routes import router as wizard_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("tarot_ai.main")

validate_deck()

app = FastAPI(title="Tarot-AI", version="0.1.0")

app.include_router(tarot_router)
app.include_router(checkout_router)
app.include_router(wizard_router)
app.include_router(pages_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _render(exc: TarotError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(TarotError)
async def tarot_error_handler(request: Request, exc: TarotError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _render(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid request: {field + ': ' if field else ''}{first.get('msg', 'malformed body')}"
    log.info("%s %s rejected: %s", request.method, request.url.path, message)
    return _render(ValidationError(message))


@app.get("/health")
def health():
    return {"ok": True}
