import logging
import math
import os

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI

from backend import app_context
from backend.app.cors import PathExemptCORSMiddleware
from backend.app.routes.account import router as account_router
from backend.app.routes.payments import WEBHOOK_ROUTE
from backend.app.routes.payments import router as payments_router


load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def _split_origins(raw_value: str) -> list:
    return [origin.strip() for origin in raw_value.split(",") if origin.strip()]


DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "lexgo_db"),
    user=os.getenv("DB_USER", "lexgo_user"),
    password=os.getenv("DB_PASSWORD", "lexgo_pass"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

CORS_ORIGINS = _split_origins(os.getenv("CORS_ORIGINS", "http://localhost:5173"))


def get_conn():
    return psycopg2.connect(**DB_CFG)


app_context.configure(get_conn=get_conn)

app = FastAPI(title="LexGO Payments API")

# The IPN route answers CORS itself with a wildcard origin.
app.add_middleware(
    PathExemptCORSMiddleware,
    exempt_paths=[WEBHOOK_ROUTE],
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payments_router)
app.include_router(account_router)


@app.get("/api/health")
def health():
    return {"status": "ok"}

# run: uvicorn backend.main:app --host 127.0.0.1 --port 8000 --reload
