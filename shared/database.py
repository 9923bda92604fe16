# shared/database.py
import logging
import os
import ssl
from contextlib import asynccontextmanager
from typing import Any, Optional

import asyncpg

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    # Build from individual components if DATABASE_URL not provided
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "characterforge")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
elif DATABASE_URL.startswith("postgres://"):
    # asyncpg only understands the postgresql:// scheme
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Connection pool
_pool: Optional[asyncpg.Pool] = None


class Database:
    """Database wrapper for asyncpg with connection pooling"""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def fetch_one(self, query: str, *args) -> Optional[dict[str, Any]]:
        """Fetch a single row"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *args)
            return dict(row) if row else None

    async def fetch_all(self, query: str, *args) -> list[dict[str, Any]]:
        """Fetch multiple rows"""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
            return [dict(row) for row in rows]

    async def fetch_val(self, query: str, *args) -> Any:
        """Fetch the first column of the first row"""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args) -> str:
        """Execute a query without returning results"""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def execute_schema(self, query: str, *args) -> str:
        """Execute a schema/DDL query with extended timeout"""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args, timeout=300)

    @asynccontextmanager
    async def transaction(self):
        """Context manager for database transactions"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn


async def init_db():
    """Initialize database connection pool"""
    global _pool

    try:
        logger.info("Starting database initialization...")

        ssl_context = None
        environment = os.getenv("ENVIRONMENT", "development")

        if environment in ["production", "staging"]:
            # Managed Postgres requires TLS but presents a pooler certificate
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        default_min_size = 2
        default_max_size = 8

        service_name = os.getenv("SERVICE_NAME", "unknown")
        if service_name == "content":
            default_min_size = 3  # Fewer but longer operations (image generation)
            default_max_size = 10
        elif service_name == "ledger":
            default_min_size = 2
            default_max_size = 6
        elif service_name == "identity":
            default_min_size = 1
            default_max_size = 4

        min_size = int(os.getenv("DB_POOL_MIN_SIZE", default_min_size))
        max_size = int(os.getenv("DB_POOL_MAX_SIZE", default_max_size))

        logger.info(
            f"Creating database connection pool for {service_name} service (min: {min_size}, max: {max_size})..."
        )
        _pool = await asyncpg.create_pool(
            DATABASE_URL,
            ssl=ssl_context,
            min_size=min_size,
            max_size=max_size,
            command_timeout=30,
            max_inactive_connection_lifetime=300,
            # Transaction poolers do not support prepared statement caching
            statement_cache_size=0,
        )
        logger.info("Database connection pool created successfully")

        skip_schema_init = os.getenv("SKIP_SCHEMA_INIT", "true").lower() == "true"
        if not skip_schema_init:
            await create_tables()
        else:
            logger.info("Skipping schema initialization (SKIP_SCHEMA_INIT=true)")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        if _pool:
            await _pool.close()
            _pool = None
        raise


async def close_db():
    """Close database connection pool"""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


async def get_db() -> Database:
    """Dependency to get database instance"""
    if not _pool:
        await init_db()
    return Database(_pool)


async def create_tables():
    """Create the tables and credit procedures the services rely on (local development only)"""
    db = await get_db()
    logger.info("Starting database schema creation/update...")

    await db.execute_schema(
        """
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            email TEXT,
            credits_balance INTEGER NOT NULL DEFAULT 0 CHECK (credits_balance >= 0),
            api_credits_balance INTEGER NOT NULL DEFAULT 0 CHECK (api_credits_balance >= 0),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS credit_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            credit_type TEXT NOT NULL DEFAULT 'app',
            ref_id TEXT NOT NULL UNIQUE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS generations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
            config_hash TEXT NOT NULL,
            image_url TEXT NOT NULL,
            prompt_used TEXT,
            is_transparent BOOLEAN DEFAULT false,
            cost_in_credits INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS idx_generations_config_hash ON generations(config_hash);

        CREATE TABLE IF NOT EXISTS api_keys (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            label TEXT NOT NULL DEFAULT 'Untitled Key',
            key_hash TEXT NOT NULL UNIQUE,
            key_prefix TEXT,
            last_used_at TIMESTAMP WITH TIME ZONE,
            deleted_at TIMESTAMP WITH TIME ZONE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS idx_api_keys_user_id ON api_keys(user_id);
    """
    )

    # Check-and-decrement happens in one UPDATE so concurrent callers cannot overdraw.
    # A negative amount is a compensating credit.
    await db.execute_schema(
        """
        CREATE OR REPLACE FUNCTION deduct_credits(
            p_user_id UUID, p_amount INTEGER, p_ref_id TEXT, p_credit_type TEXT DEFAULT 'app'
        ) RETURNS BOOLEAN AS $$
        BEGIN
            IF p_credit_type = 'api' THEN
                UPDATE profiles
                SET api_credits_balance = api_credits_balance - p_amount, updated_at = NOW()
                WHERE id = p_user_id AND api_credits_balance >= p_amount;
            ELSE
                UPDATE profiles
                SET credits_balance = credits_balance - p_amount, updated_at = NOW()
                WHERE id = p_user_id AND credits_balance >= p_amount;
            END IF;

            IF NOT FOUND THEN
                RETURN FALSE;
            END IF;

            INSERT INTO credit_transactions (user_id, amount, credit_type, ref_id)
            VALUES (p_user_id, -p_amount, p_credit_type, p_ref_id);
            RETURN TRUE;
        END;
        $$ LANGUAGE plpgsql;

        CREATE OR REPLACE FUNCTION handle_purchase(
            p_user_id UUID, p_amount INTEGER, p_ref_id TEXT, p_credit_type TEXT DEFAULT 'app'
        ) RETURNS BOOLEAN AS $$
        BEGIN
            INSERT INTO credit_transactions (user_id, amount, credit_type, ref_id)
            VALUES (p_user_id, p_amount, p_credit_type, p_ref_id)
            ON CONFLICT (ref_id) DO NOTHING;

            IF NOT FOUND THEN
                RETURN FALSE;
            END IF;

            IF p_credit_type = 'api' THEN
                UPDATE profiles SET api_credits_balance = api_credits_balance + p_amount, updated_at = NOW()
                WHERE id = p_user_id;
            ELSE
                UPDATE profiles SET credits_balance = credits_balance + p_amount, updated_at = NOW()
                WHERE id = p_user_id;
            END IF;
            RETURN TRUE;
        END;
        $$ LANGUAGE plpgsql;
    """
    )

    logger.info("Database schema creation/update completed successfully")
