import os

import uvicorn

from backoffice.core.config import settings


def run_migrations() -> bool:
    """Run Alembic migrations."""
    try:
        from alembic.config import Config
        from alembic import command

        alembic_cfg = Config("alembic.ini")
        print("[STARTUP] Running database migrations...")
        command.upgrade(alembic_cfg, "head")
        print("[STARTUP] Migrations complete!")
        return True
    except Exception as e:
        print(f"[WARN] Migration failed: {e}")
        return False


if __name__ == "__main__":
    # Tables are otherwise created by the app lifespan
    if os.getenv("RUN_MIGRATIONS") == "true":
        run_migrations()

    reload = os.getenv("ENV") == "development"

    uvicorn.run(
        "backoffice.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
        workers=1,
        lifespan="on",
    )
