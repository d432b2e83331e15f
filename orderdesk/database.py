"""Database configuration and initialization."""
from flask import current_app
from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT primary keys in PostgreSQL; SQLite only autoincrements INTEGER keys
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')


def _engine_options(app):
    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    options = {'echo': app.config.get('SQLALCHEMY_ECHO', False)}

    if database_uri.startswith('sqlite'):
        # Single shared connection so in-memory databases survive across sessions
        options.update(
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        options.update(
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )
    return options


def init_db(app):
    """
    Initialize database connection for this app instance.

    Engine and session registry live in app.extensions, one per app,
    so nothing is shared between app instances (tests create many).
    """
    engine = create_engine(app.config['SQLALCHEMY_DATABASE_URI'], **_engine_options(app))

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    app.extensions['db_engine'] = engine
    app.extensions['db_session'] = db_session

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_tables(app):
    """Create all tables for the registered models."""
    import orderdesk.models  # noqa: F401  (register mappers)
    Base.metadata.create_all(app.extensions['db_engine'])


def get_engine():
    """Get database engine of the current app."""
    return current_app.extensions['db_engine']


def get_session():
    """Get database session of the current app."""
    return current_app.extensions['db_session']
