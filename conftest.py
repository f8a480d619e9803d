import os

# Tests build their own SQLite databases; keep the app off real services.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_tablepos.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("LOG_SAMPLE_2XX", "0")
