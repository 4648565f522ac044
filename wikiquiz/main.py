from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from wikiquiz.api.routes import jobs, models, questions, reviews, sources, titles
from wikiquiz.config import get_settings
from wikiquiz.core.exceptions import domain_validation_exception_handler, global_exception_handler, http_exception_handler, request_validation_exception_handler
from wikiquiz.core.lifespan import lifespan
from wikiquiz.core.middleware import RequestLoggingMiddleware
from wikiquiz.errors import ValidationError

settings = get_settings()

app = FastAPI(title="wikiquiz-engine", lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "DELETE", "OPTIONS"], allow_headers=["content-type", "x-request-id"], expose_headers=["x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(ValidationError, domain_validation_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(models.router, prefix="/v1/models", tags=["models"])
app.include_router(sources.router, prefix="/v1/sources", tags=["sources"])
app.include_router(titles.router, prefix="/v1/titles", tags=["titles"])
app.include_router(questions.router, prefix="/v1/questions", tags=["questions"])
app.include_router(reviews.router, prefix="/v1/reviews", tags=["reviews"])
