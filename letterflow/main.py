"""Main FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from letterflow import config
from letterflow.api.routes import router
from letterflow.database import Base, engine, session_scope
# Import models to register them with SQLAlchemy Base
from letterflow.models.store import KeyValueEntry
from letterflow.services.bootstrap import bootstrap
from letterflow.services.store import KeyValueStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed an empty store on startup."""
    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        bootstrap(KeyValueStore(db))
    logger.info("Letterflow ready")
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Letterflow - Office Correspondence",
    description="Compose letters, route them to signers and viewers, and track approval.",
    version="0.1.0"
)

# Enable CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api", tags=["Letterflow"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Letterflow"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
