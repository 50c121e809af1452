"""Подключение к базе данных"""
from sqlalchemy import event, BigInteger, Integer
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from config import settings

# Базовый класс для моделей
Base = declarative_base()

# BIGINT в PostgreSQL, INTEGER в SQLite (только он дает автоинкремент rowid)
BigIntId = BigInteger().with_variant(Integer(), "sqlite")


def configure_sqlite(engine: AsyncEngine) -> None:
    """Сериализовать пишущие транзакции SQLite.

    SQLite не поддерживает SELECT ... FOR UPDATE, поэтому каждая транзакция
    открывается через BEGIN IMMEDIATE и сразу берет блокировку на запись.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # отключаем собственный BEGIN драйвера
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Создать движок с учетом диалекта"""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo, poolclass=NullPool)
        configure_sqlite(engine)
        return engine
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Фабрика сессий"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


# Создаем движок для асинхронной работы
engine = build_engine(settings.database_url, echo=settings.DB_ECHO)

# Создаем фабрику сессий
async_session_maker = build_session_maker(engine)


async def create_tables(target: AsyncEngine = engine) -> None:
    """Создать таблицы (для локального запуска и тестов)"""
    # импорт регистрирует модели в метаданных
    import database.models  # noqa: F401
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    """Получить сессию базы данных"""
    async with async_session_maker() as session:
        yield session
