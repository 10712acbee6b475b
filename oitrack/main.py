# oitrack/main.py
from fastapi import FastAPI
from oitrack.config import settings
from oitrack.database import Base, engine
from oitrack.models import user, task, activity, goal, notification  # noqa: F401 (register tables)
from oitrack.routers import task as task_router, activity as activity_router, goal as goal_router
from oitrack.routers import department, notification as notification_router, ai
import logging
from sqlalchemy import exc as sa_exc

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title="OI Tracker - OI & Key-Focus Task Management", version="1.0")

# Include Routers
app.include_router(task_router.router)
app.include_router(activity_router.router)
app.include_router(goal_router.router)
app.include_router(department.router)
app.include_router(notification_router.router)
app.include_router(ai.router)

# Create DB Tables (for demo only — use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    # create tables (async). ignore duplicate-object errors from previous partial runs.
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logging.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

@app.get("/")
def read_root():
    return {"message": "Welcome to the OI Tracker API"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("oitrack.main:app", host="0.0.0.0", port=8000, reload=True)
