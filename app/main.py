import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.logging_config import configure_logging
from app.routers.generate import limiter, router as generate_router

configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="llm.txt Generator API",
    description="Crawls a website and returns llm.txt / llm-full.txt documents describing it.",
    version="0.1.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(generate_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from llm.txt Generator"}
