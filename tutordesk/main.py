import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutordesk.core.config import settings
from tutordesk.core.exceptions import TutorDeskError, ValidationError
from tutordesk.core.logging_config import setup_logging
from tutordesk.core.request_log import RequestLogMiddleware
from tutordesk.routers import ping, folders, materials, sessions, courses, students, analytics

setup_logging()
logger = logging.getLogger(__name__)


def custom_generate_unique_id(route):
    return f"{route.tags[0]}_{route.name}" if route.tags else route.name

app = FastAPI(title="TutorDesk",
    version="1.0.0",
    generate_unique_id_function=custom_generate_unique_id,)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLogMiddleware)


@app.exception_handler(TutorDeskError)
async def tutordesk_error_handler(request: Request, exc: TutorDeskError):
    errors = exc.errors if isinstance(exc, ValidationError) else []
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "errors": errors})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "errors": []})


app.include_router(ping.router)
app.include_router(folders.router)
app.include_router(materials.router)
app.include_router(sessions.router)
app.include_router(courses.router)
app.include_router(students.router)
app.include_router(analytics.router)
