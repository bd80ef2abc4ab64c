import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bracket_pool.database import init_db
from bracket_pool.routes import demo, pools, runtime

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Bracket Pool API"

app = FastAPI(title=APP_NAME)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(pools.router, prefix="/api", tags=["pools"])

# Game runtime (spreads, status, final scores -> advancement + payouts)
app.include_router(runtime.router, prefix="/api", tags=["runtime"])

# Demo seeding/simulation (dev only)
app.include_router(demo.router, prefix="/api", tags=["demo"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("%s started with %d routes", APP_NAME, len(app.routes))


@app.get("/api/health")
def health_check():
    """Liveness check"""
    return {"app_name": APP_NAME, "status": "healthy"}
