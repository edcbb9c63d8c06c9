from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

# request sections FastAPI prefixes onto error locations
_LOCATION_SOURCES = {"body", "query", "path", "header", "cookie"}


def field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in _LOCATION_SOURCES]
    return ".".join(parts) or "request"


class ValidationErrorHandler:
    """Reports malformed requests as 400 with one entry per offending field."""

    async def __call__(self, request: Request, exc: RequestValidationError):
        fields = [
            {
                "field": field_name(err.get("loc", ())),
                "msg": str(err.get("msg")),
                "type": err.get("type"),
            }
            for err in exc.errors()
        ]
        summary = "; ".join(f"{f['field']}: {f['msg']}" for f in fields)

        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation failed",
                "detail": summary,
                "details": fields,
            },
        )
