import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from settings import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# 1. Import Models BEFORE create_all to ensure they are registered in Base.metadata
from database import Base, SessionLocal, engine
from models import db_models  # CRITICAL: Ensures models are registered
Base.metadata.create_all(bind=engine)

from services.retention import retention_loop


@asynccontextmanager
async def lifespan(app: FastAPI):
    purge_task = asyncio.create_task(retention_loop(SessionLocal, settings.retention_interval_seconds))
    yield
    purge_task.cancel()
    try:
        await purge_task
    except asyncio.CancelledError:
        pass


# 2. Setup App
app = FastAPI(title="Ceku Backend", lifespan=lifespan)

# 3. Setup CORS: allow all in development/docker mode for ease of use
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-conversation-id"]
)

# 4. Public avatars bucket; user-files stay private behind /files
app.mount("/data/avatars", StaticFiles(directory=settings.bucket_dir("avatars")), name="avatars")

# 5. Include Routers
from routers import chat, files, models, profile, projects
from routers import settings as settings_router
app.include_router(chat.router)
app.include_router(projects.router)
app.include_router(files.router)
app.include_router(profile.router)
app.include_router(models.router)
app.include_router(settings_router.router)

@app.get("/")
def read_root():
    return {"status": "Ceku backend is running", "provider": settings.get_active_provider()}
