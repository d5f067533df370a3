import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, event, func, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from reflectboard.config import settings

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY = "Honest Message"
DEFAULT_AUTHOR = "Anonymous"

REQUIRED_TABLES = ("messages", "reflections")

SEED_MESSAGES = [
    {
        "text": "Today I admitted I've been pretending to be okay when I'm not. "
                "There's power in saying 'I'm struggling' out loud.",
        "category": "Vulnerability",
        "author": "Anonymous",
    },
    {
        "text": "Growth isn't about becoming someone new, but uncovering who you've "
                "always been beneath the layers of expectation.",
        "category": "Personal Growth",
        "author": "Jamie",
    },
    {
        "text": "I'm learning that boundaries aren't walls to keep people out, but gates "
                "that let me choose who gets to be in my garden.",
        "category": "Personal Growth",
        "author": "Taylor",
    },
    {
        "text": "Grateful for: the quiet moment this morning with my coffee, the sun "
                "through the window, and nothing urgent demanding my attention.",
        "category": "Gratitude",
        "author": "Sam",
    },
    {
        "text": "What if we measured success by how often we choose courage over comfort?",
        "category": "Question to Ponder",
        "author": "Anonymous",
    },
]


class StorageError(Exception):
    """Raised when the database fails for any reason other than an expected constraint."""


def build_engine(database_url: str, ssl_mode: str, timeout_seconds: float) -> Engine:
    """
    Create the SQLAlchemy engine for SQLite or PostgreSQL.

    Both backends get a bounded wait per operation: SQLite through its busy
    timeout, PostgreSQL through connect_timeout and statement_timeout.
    """
    if database_url.startswith("sqlite"):
        # check_same_thread=False is required for SQLite to work with FastAPI's threadpool
        db_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
            echo=False,
        )

        @event.listens_for(db_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            # SQLite ignores REFERENCES ... ON DELETE CASCADE unless asked per connection
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return db_engine

    return create_engine(
        database_url,
        connect_args={
            "sslmode": ssl_mode,
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        },
        pool_pre_ping=True,
        echo=False,
    )


engine = build_engine(settings.DATABASE_URL, settings.ssl_mode, settings.DB_TIMEOUT_SECONDS)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db(seed: bool = False) -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.

    Args:
        seed: Insert the sample messages when the messages table is empty
    """
    logger.debug(f"Initializing database, backend: {engine.url.get_backend_name()}")
    try:
        # Import models to register them with Base.metadata
        from reflectboard.models import Message, Reflection  # noqa: F401

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=engine)

        if seed:
            with SessionLocal() as db:
                seed_initial_messages(db)

        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and both tables exist, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

            inspector = inspect(conn)
            for table_name in REQUIRED_TABLES:
                if not inspector.has_table(table_name):
                    logger.error(f"Database schema not applied: '{table_name}' table not found")
                    return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def seed_initial_messages(db: Session) -> int:
    """
    Insert the sample messages if the messages table is empty.

    Seeded messages start with reflection_count = 0 because no ledger rows back them.

    Returns:
        Number of messages inserted
    """
    from reflectboard.models import Message

    existing = db.scalar(select(func.count(Message.id))) or 0
    if existing:
        logger.debug(f"Skipping seed, {existing} messages already present")
        return 0

    for item in SEED_MESSAGES:
        db.add(Message(**item))
    db.commit()
    logger.info(f"Seeded {len(SEED_MESSAGES)} initial messages")
    return len(SEED_MESSAGES)


# =============================================================================
# Message Repository Functions
# =============================================================================

def create_message(
    db: Session,
    text: str,
    category: Optional[str] = None,
    author: Optional[str] = None,
):
    """
    Create a new message.

    Args:
        db: Database session
        text: Message body, already validated as non-blank
        category: Display category, defaults to DEFAULT_CATEGORY
        author: Display author, blank or missing becomes DEFAULT_AUTHOR

    Returns:
        The persisted Message

    Raises:
        StorageError: if the insert fails
    """
    from reflectboard.models import Message

    message = Message(
        text=text.strip(),
        category=(category or "").strip() or DEFAULT_CATEGORY,
        author=(author or "").strip() or DEFAULT_AUTHOR,
    )
    logger.info(f"Creating message: category={message.category}, author={message.author}")

    try:
        db.add(message)
        db.commit()
        db.refresh(message)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create message: {e}")
        raise StorageError("failed to save message") from e

    logger.info(f"Message created successfully: {message.id}")
    return message


def get_message(db: Session, message_id: int):
    """
    Retrieve a message by its ID.

    Returns:
        Message object if found, None otherwise
    """
    from reflectboard.models import Message

    result = db.get(Message, message_id)
    logger.debug(f"Message lookup {message_id}: {'found' if result else 'not found'}")
    return result


def get_recent_messages(db: Session, limit: int = 10) -> list:
    """Newest messages first, id breaks ties between equal timestamps."""
    from reflectboard.models import Message

    query = (
        select(Message)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    messages = list(db.scalars(query))
    logger.info(f"Retrieved {len(messages)} recent messages (limit={limit})")
    return messages


def get_ranked_messages(db: Session) -> list:
    """All messages ordered by reflection_count DESC, then newest first."""
    from reflectboard.models import Message

    query = select(Message).order_by(
        Message.reflection_count.desc(),
        Message.created_at.desc(),
        Message.id.desc(),
    )
    return list(db.scalars(query))


def get_total_reflections(db: Session) -> int:
    from reflectboard.models import Message

    return db.scalar(select(func.sum(Message.reflection_count))) or 0


# =============================================================================
# Reflection Ledger Functions
# =============================================================================

def find_reflection(db: Session, message_id: int, voter_identity: str) -> Optional[int]:
    """
    Look up the ledger row for a (message, voter) pair.

    Returns:
        The reflection id if one exists, None otherwise
    """
    from reflectboard.models import Reflection

    return db.scalar(
        select(Reflection.id).where(
            Reflection.message_id == message_id,
            Reflection.voter_identity == voter_identity,
        )
    )


def get_stats(db: Session) -> dict:
    """
    Get aggregate statistics for the /stats endpoint.

    Computes:
    - total_messages: count of all messages
    - total_reflections: sum of all reflection counters
    - unique_voters: distinct voter identities in the ledger
    - messages_per_category: message count per category (desc)

    Returns:
        Dictionary with stats data
    """
    from reflectboard.models import Message, Reflection

    logger.info("Computing message statistics")

    total_messages = db.scalar(select(func.count(Message.id))) or 0
    total_reflections = get_total_reflections(db)
    unique_voters = db.scalar(
        select(func.count(func.distinct(Reflection.voter_identity)))
    ) or 0

    category_count = func.count(Message.id).label("message_count")
    rows = db.execute(
        select(Message.category, category_count)
        .group_by(Message.category)
        .order_by(category_count.desc(), Message.category.asc())
    ).all()
    messages_per_category = [
        {"category": row.category, "count": row.message_count}
        for row in rows
    ]

    logger.info(f"Stats computed: {total_messages} messages, {total_reflections} reflections")

    return {
        "total_messages": total_messages,
        "total_reflections": total_reflections,
        "unique_voters": unique_voters,
        "messages_per_category": messages_per_category,
    }
