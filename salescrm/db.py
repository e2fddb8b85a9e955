# salescrm/db.py
"""
Database Connection Management

Version: 1.0.0
Features:
- Singleton pattern with thread-safe double-checked locking
- Connection pooling with auto-reconnect
- Health check utilities
- Query execution helpers
- Remote procedure (SQL function) calls

Every helper accepts an optional ``engine`` so callers holding their own
engine (query classes, tests) bypass the singleton.
"""

import pandas as pd
from sqlalchemy import create_engine, text, bindparam
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from sqlalchemy.exc import OperationalError
from urllib.parse import quote_plus
import logging
import threading
from typing import Tuple, Optional, Dict, Any, List, Iterable

from .config import config

logger = logging.getLogger(__name__)

# ==================== SINGLETON ENGINE ====================

_engine = None
_engine_lock = threading.Lock()


def get_db_engine() -> Engine:
    """
    Get SQLAlchemy database engine (singleton pattern)

    Thread-safe implementation using double-checked locking.
    Reuses the same engine across all calls to prevent
    connection pool exhaustion.

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = _create_engine()

    return _engine


def _create_engine() -> Engine:
    """Create new database engine with configured settings"""
    if not config.is_db_configured():
        raise ValueError("Missing required database configuration. Please check .env file.")

    db_config = config.get_db_config()
    app_config = config.app_config

    user = db_config["user"]
    password = quote_plus(str(db_config["password"]))
    host = db_config["host"]
    port = db_config["port"]
    database = db_config["database"]

    url = f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{database}"

    logger.info(f"🔌 Creating database engine: postgresql+psycopg2://{user}:***@{host}:{port}/{database}")

    pool_size = app_config.get("DB_POOL_SIZE", 5)
    pool_recycle = app_config.get("DB_POOL_RECYCLE", 1800)

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,  # Auto-reconnect on stale connections
        connect_args={"sslmode": db_config.get("sslmode", "require")},
        echo=False
    )

    logger.info(f"✅ Database engine created (pool_size={pool_size}, recycle={pool_recycle}s)")

    return engine


# ==================== CONNECTION MANAGEMENT ====================

def check_db_connection(engine: Engine = None) -> Tuple[bool, Optional[str]]:
    """
    Check if database connection is healthy

    Returns:
        Tuple of (is_connected: bool, error_message: str or None)
    """
    try:
        engine = engine or get_db_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except OperationalError as e:
        error_msg = "Cannot connect to database. Please check your network connection."
        logger.error(f"❌ Database connection failed: {e}")
        return False, error_msg
    except Exception as e:
        error_msg = f"Database error: {str(e)}"
        logger.error(f"❌ Database error: {e}")
        return False, error_msg


def get_connection_pool_status() -> Dict[str, Any]:
    """Get connection pool statistics for monitoring"""
    if _engine is None:
        return {"status": "not_initialized"}

    try:
        pool = _engine.pool
        return {
            "status": "active",
            "pool_size": pool.size(),
            "checked_in": pool.checkedin(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}


# ==================== QUERY HELPERS ====================

def build_statement(query: str, params: Dict = None):
    """
    Wrap SQL in text() and mark list/tuple parameters as expanding.

    ``WHERE owner_id IN :owner_ids`` then works with a Python list on every
    dialect (Postgres in production, SQLite in tests).
    """
    stmt = text(query)
    expanding = [
        key for key, value in (params or {}).items()
        if isinstance(value, (list, tuple, set, frozenset))
    ]
    if expanding:
        stmt = stmt.bindparams(*[bindparam(key, expanding=True) for key in expanding])
    return stmt


def _normalize_params(params: Dict = None) -> Dict:
    normalized = {}
    for key, value in (params or {}).items():
        if isinstance(value, (set, frozenset, tuple)):
            value = list(value)
        normalized[key] = value
    return normalized


def execute_query(query: str, params: Dict = None, engine: Engine = None) -> List[Dict]:
    """
    Execute SELECT query and return results as list of dicts
    """
    engine = engine or get_db_engine()
    params = _normalize_params(params)

    with engine.connect() as conn:
        result = conn.execute(build_statement(query, params), params)
        return [dict(row._mapping) for row in result]


def execute_query_df(query: str, params: Dict = None, engine: Engine = None) -> pd.DataFrame:
    """
    Execute SELECT query and return results as DataFrame
    """
    engine = engine or get_db_engine()
    params = _normalize_params(params)

    with engine.connect() as conn:
        result = conn.execute(build_statement(query, params), params)
        return pd.DataFrame(result.fetchall(), columns=list(result.keys()))


def execute_update(query: str, params: Dict = None, engine: Engine = None) -> int:
    """
    Execute INSERT/UPDATE/DELETE query

    Returns:
        Number of affected rows
    """
    engine = engine or get_db_engine()
    params = _normalize_params(params)

    with engine.connect() as conn:
        result = conn.execute(build_statement(query, params), params)
        conn.commit()
        return result.rowcount


def call_rpc(function_name: str, params: Dict = None, engine: Engine = None) -> List[Dict]:
    """
    Call a remote procedure exposed by the backend as a SQL function.

    Arguments are passed by name (``fn(p_id => :p_id)``) so the order of
    the dict does not matter. Functions returning a scalar come back as a
    single row with one column named after the function.

    Args:
        function_name: SQL function name (must be a plain identifier)
        params: Named arguments

    Returns:
        List of row dicts
    """
    if not function_name.replace('_', '').isalnum():
        raise ValueError(f"Invalid function name: {function_name}")

    params = params or {}
    args = ", ".join(f"{key} => :{key}" for key in params)
    query = f"SELECT * FROM {function_name}({args})"

    engine = engine or get_db_engine()
    with engine.connect() as conn:
        result = conn.execute(text(query), params)
        rows = [dict(row._mapping) for row in result]
        conn.commit()

    logger.debug(f"RPC {function_name} returned {len(rows)} rows")
    return rows


def rpc_scalar(rows: Iterable[Dict], default: Any = None) -> Any:
    """Extract the scalar value of a single-value RPC result."""
    rows = list(rows)
    if not rows:
        return default
    first = rows[0]
    if len(first) == 1:
        return next(iter(first.values()))
    return first


# ==================== EXPORTS ====================

__all__ = [
    'get_db_engine',
    'check_db_connection',
    'get_connection_pool_status',
    'build_statement',
    'execute_query',
    'execute_query_df',
    'execute_update',
    'call_rpc',
    'rpc_scalar',
]
