from fastapi import FastAPI, APIRouter
from starlette.middleware.cors import CORSMiddleware
import logging

from config import client, db, CORS_ORIGINS, LOG_LEVEL
from routes import leads, partners, event_log
from services.store import MongoStore

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app without a prefix
app = FastAPI(title="Lead CRM - Assignment API")

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


@api_router.get("/")
async def root():
    return {"message": "Lead CRM API"}


api_router.include_router(leads.router)
api_router.include_router(partners.router)
api_router.include_router(event_log.router)

app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def create_indexes():
    try:
        await MongoStore(db).ensure_indexes()
    except Exception as e:
        logger.error(f"[STARTUP] Index creation failed: {e}")


@app.on_event("shutdown")
async def shutdown_db_client():
    client.close()
