"""FastAPI application setup."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from segment_studio.db.database import init_db
from segment_studio.api.routes import ai, customers, fields, rules, segments
from segment_studio.core.rules.exceptions import NodeNotFoundError, SegmentRuleError
from segment_studio.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, PRODUCT_DESCRIPTION

app = FastAPI(
    title=f"{PRODUCT_NAME} API",
    description=PRODUCT_DESCRIPTION,
    version=PRODUCT_VERSION,
)

# Rate limiter lives with the AI routes, the only limited endpoints
app.state.limiter = ai.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(SegmentRuleError)
def segment_rule_error_handler(request: Request, exc: SegmentRuleError) -> JSONResponse:
    """Report rejected edits and invalid trees; the stored tree is unchanged."""
    code = status.HTTP_404_NOT_FOUND if isinstance(exc, NodeNotFoundError) else status.HTTP_422_UNPROCESSABLE_ENTITY
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@app.on_event("startup")
def startup():
    """Initialize database on startup."""
    init_db()


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "name": PRODUCT_NAME,
        "version": PRODUCT_VERSION,
        "status": "ok",
        "tagline": PRODUCT_TAGLINE,
    }


# Mount API routers
app.include_router(fields.router, prefix="/api/fields", tags=["fields"])
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
app.include_router(segments.router, prefix="/api/segments", tags=["segments"])
app.include_router(rules.router, prefix="/api/segments", tags=["rule editor"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
