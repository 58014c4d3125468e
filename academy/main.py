# academy/main.py
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc
import logging

from academy.config import settings
from academy.database import engine, Base
from academy.core.errors import AcademyError
import academy.models.user  # noqa: F401
import academy.models.group  # noqa: F401
import academy.models.rating  # noqa: F401
import academy.models.attendance  # noqa: F401
import academy.models.homework  # noqa: F401
import academy.models.points  # noqa: F401
import academy.models.reward  # noqa: F401
import academy.models.competition  # noqa: F401
import academy.models.message  # noqa: F401
from academy.routers import (
    auth, groups, users, ratings, homework, attendance, bonus_tasks, points, rewards, competitions, messages,
    notifications,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Academy - Rating and Rewards Backend", version="1.0")

# Include Routers
app.include_router(auth.router)
app.include_router(groups.router)
app.include_router(users.router)
app.include_router(ratings.router)
app.include_router(homework.router)
app.include_router(attendance.router)
app.include_router(bonus_tasks.router)
app.include_router(points.router)
app.include_router(rewards.router)
app.include_router(competitions.router)
app.include_router(messages.router)
app.include_router(notifications.router)


@app.exception_handler(AcademyError)
async def academy_error_handler(request: Request, exc: AcademyError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


@app.exception_handler(sa_exc.OperationalError)
@app.exception_handler(sa_exc.InterfaceError)
async def database_unavailable_handler(request: Request, exc: sa_exc.DBAPIError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable"},
    )


# Create DB Tables (for local runs, use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "already exists" in msg:
                logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise


@app.get("/")
def read_root():
    return {"message": "Welcome to the Academy backend"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("academy.main:app", host="0.0.0.0", port=8000, reload=True)
