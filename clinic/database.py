from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic.core import config


def _engine_options(url: str) -> dict:
    if url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_clinic_schema_checked = False

# Columns added after the first release; older databases get them on startup.
SCHEMA_MIGRATIONS = {
    'appointments': [
        ('reason', 'ALTER TABLE appointments ADD COLUMN reason VARCHAR'),
        ('admin_notes', 'ALTER TABLE appointments ADD COLUMN admin_notes TEXT'),
        ('cancelled_by', 'ALTER TABLE appointments ADD COLUMN cancelled_by VARCHAR'),
    ],
    'clinic_settings': [
        ('version', 'ALTER TABLE clinic_settings ADD COLUMN version INTEGER NOT NULL DEFAULT 1'),
    ],
    'vacations': [
        ('title', 'ALTER TABLE vacations ADD COLUMN title VARCHAR'),
    ],
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_clinic_schema(bind=None) -> None:
    global _clinic_schema_checked

    if _clinic_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _clinic_schema_checked:
            return

        inspector = inspect(bind)
        table_names = set(inspector.get_table_names())

        with bind.begin() as connection:
            for table_name, migration_steps in SCHEMA_MIGRATIONS.items():
                if table_name not in table_names:
                    continue
                existing_columns = {column['name'] for column in inspector.get_columns(table_name)}
                for column_name, statement in migration_steps:
                    if column_name not in existing_columns:
                        connection.execute(text(statement))

            if 'appointments' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_date_slot ON appointments(date, slot_time)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_status ON appointments(patient_id, status)')
                )

        _clinic_schema_checked = True
