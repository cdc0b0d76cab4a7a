import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .core.logging import setup_logging
from .crud import CRUDError
from .database import SessionLocal, create_tables
from .bootstrap import create_or_update_admin
from .limiter import limiter
from .routers import auth, users, timeline, questionnaires, assignments, responses
from .services.assembler import AssemblyError
from .services.recurrence import RecurrenceScheduler
from .services.responses import SubmissionError

settings = get_settings()

logger = setup_logging(settings.log_level, json_logs=settings.is_production)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.state.limiter = limiter
app.state.scheduler = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.on_event("startup")
async def on_startup():
    create_tables()
    create_or_update_admin()
    if settings.recurrence_enabled:
        app.state.scheduler = RecurrenceScheduler(SessionLocal, settings.recurrence_sweep_seconds)
        app.state.scheduler.start()
    logger.info("startup.complete", environment=settings.environment, recurrence=settings.recurrence_enabled)


@app.on_event("shutdown")
async def on_shutdown():
    if app.state.scheduler is not None:
        await app.state.scheduler.stop()
        app.state.scheduler = None


@app.exception_handler(CRUDError)
async def crud_error_handler(request: Request, exc: CRUDError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(SubmissionError)
async def submission_error_handler(request: Request, exc: SubmissionError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(AssemblyError)
async def assembly_error_handler(request: Request, exc: AssemblyError):
    logger.error("assembly.failed", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Questionnaire could not be assembled"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(timeline.router, prefix="/api/v1")
app.include_router(questionnaires.router, prefix="/api/v1")
app.include_router(assignments.router, prefix="/api/v1")
app.include_router(responses.router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"name": settings.app_name, "version": settings.app_version}


if __name__ == "__main__":
    uvicorn.run("milli.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
