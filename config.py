import os
from functools import lru_cache
from typing import Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    database_url: str
    database_name: str = "estateEase"
    port: int = 5000
    stripe_secret_key: Optional[str] = None
    log_level: str = "INFO"


def build_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASS")
    if not user or not password:
        raise ValueError("DB_USER and DB_PASS (or DATABASE_URL) environment variables must be set")
    cluster = os.getenv("DB_CLUSTER", "cluster0.uouce.mongodb.net")
    return (
        f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{cluster}/"
        "?retryWrites=true&w=majority&appName=Cluster0"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=build_database_url(),
        database_name=os.getenv("DATABASE_NAME", "estateEase"),
        port=int(os.getenv("PORT", 5000)),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
