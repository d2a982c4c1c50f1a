"""
Configuration et utilitaires partagés
"""

import os
import uuid
import logging
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger("config")

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'lead_crm')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

logger.info(f"[CONFIG] Using database: {DB_NAME}")

# Capacité hebdomadaire par défaut d'un partenaire (preferences.average_leads_per_week)
DEFAULT_LEADS_PER_WEEK = int(os.environ.get('DEFAULT_LEADS_PER_WEEK', '5'))

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


# ==================== HELPERS ====================

def now_utc() -> datetime:
    """Retourne la date/heure actuelle (UTC)"""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return to_iso(now_utc())


def to_iso(value: datetime) -> str:
    """Sérialise une date en ISO UTC (format stocké en base)"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def generate_id() -> str:
    """Génère un identifiant de document"""
    return str(uuid.uuid4())
