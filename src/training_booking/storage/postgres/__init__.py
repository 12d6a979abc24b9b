"""PostgreSQL record store (SQLAlchemy async + asyncpg)."""
