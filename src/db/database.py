# manages connection to db, provides helper methods internal to db package
import asyncio
import os
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from sqlite3 import Row
from typing import Optional

import aiosqlite

from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = config.DB_PATH
SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.sql")

# money is stored as NUMERIC; sqlite keeps whole amounts exact
sqlite3.register_adapter(Decimal, str)

_initialized = False
_init_lock = asyncio.Lock()


def now_text(when: Optional[datetime] = None) -> str:
    return (when or datetime.now()).isoformat(sep=" ", timespec="microseconds")


async def _init_db(conn: aiosqlite.Connection) -> None:
    _logger.info(f"Initializing database {DB_PATH}...")
    with open(SCHEMA_PATH, "r") as f:
        await conn.executescript(f.read())
    await conn.commit()


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Creates the schema on first use in this process.
    """
    global _initialized
    directory = os.path.dirname(DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()
