
def _normalize_db_url(url: str | None) -> str | None:
    # managed postgres often hands out "postgres://..." while SQLAlchemy async needs "postgresql+asyncpg://..."
    if not url:
        return None
    if url.startswith("postgres://",):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def is_postgres(bind) -> bool:
    return bind.dialect.name == "postgresql"


# execution option naming the BEGIN mode of a sqlite transaction ("DEFERRED" / "IMMEDIATE")
SQLITE_BEGIN_OPTION = "sqlite_begin"
