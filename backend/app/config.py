"""Application-wide configuration loader.

Every process (API, Celery worker, tests) imports the module-level
``settings`` singleton.  Values come from environment variables and fall back
to defaults suitable for the docker-compose setup.
"""

import os

class Settings:
    """Settings helper that gracefully falls back to sane defaults.

    Rationale
    ---------
    When docker-compose injects an environment variable whose value is empty
    (e.g. `DATABASE_URL=""`) ``os.getenv("DATABASE_URL", default)`` returns an
    empty string *not* ``None``.  That empty string then overrides the useful
    in-code default and downstream libraries (SQLAlchemy, Celery, redis-py)
    raise parsing errors.

    To avoid similar problems for every setting we use the idiom

        os.getenv(KEY) or DEFAULT

    so that *falsy* values ("", None, 0) are replaced by the specified
    DEFAULT.
    """

    DATABASE_URL: str = os.getenv('DATABASE_URL') or 'postgresql://cinestream:cinestream@db:5432/cinestream'
    DB_ECHO: bool = (os.getenv('DB_ECHO') or '0').lower() in ('1', 'true', 'yes')
    REDIS_URL: str = os.getenv('REDIS_URL') or 'redis://broker:6379/1'
    CELERY_BROKER_URL: str = os.getenv('CELERY_BROKER_URL') or 'redis://broker:6379/0'
    CELERY_RESULT_BACKEND: str = os.getenv('CELERY_RESULT_BACKEND') or 'redis://broker:6379/0'

    # Catalog provider
    TMDB_API_KEY: str = os.getenv('TMDB_API_KEY') or ''
    TMDB_BASE_URL: str = os.getenv('TMDB_BASE_URL') or 'https://api.themoviedb.org/3'
    TMDB_IMAGE_BASE_URL: str = os.getenv('TMDB_IMAGE_BASE_URL') or 'https://image.tmdb.org/t/p/original'

    # Content generation providers (fallback keys when the caller sends none)
    GEMINI_API_KEY: str = os.getenv('GEMINI_API_KEY') or ''
    OPENAI_API_KEY: str = os.getenv('OPENAI_API_KEY') or ''
    ANTHROPIC_API_KEY: str = os.getenv('ANTHROPIC_API_KEY') or ''
    OLLAMA_URL: str = os.getenv('OLLAMA_URL') or 'http://ollama:11434'
    DEFAULT_AI_MODEL: str = os.getenv('DEFAULT_AI_MODEL') or 'gemini-2.5-flash'

    # Worker & queue tuning
    WORKER_CONCURRENCY: int = int(os.getenv('WORKER_CONCURRENCY') or '2')
    WORKER_RATE_LIMIT: str = os.getenv('WORKER_RATE_LIMIT') or '10/m'
    JOB_MAX_ATTEMPTS: int = int(os.getenv('JOB_MAX_ATTEMPTS') or '3')
    JOB_BACKOFF_SECONDS: float = float(os.getenv('JOB_BACKOFF_SECONDS') or '2')
    COMPLETED_JOBS_RETAINED: int = int(os.getenv('COMPLETED_JOBS_RETAINED') or '100')
    STATUS_TTL_SECONDS: int = int(os.getenv('STATUS_TTL_SECONDS') or '3600')
    MAX_EMPTY_PAGES: int = int(os.getenv('MAX_EMPTY_PAGES') or '5')

    LOG_DIR: str = os.getenv('LOG_DIR') or 'backend/logs'
    LOG_LEVEL: str = os.getenv('LOG_LEVEL') or 'INFO'

settings = Settings()
