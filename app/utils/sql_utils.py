"""
Utilitários SQL dependentes do dialeto (PostgreSQL em produção, SQLite nos testes)
"""
import logging
from typing import Optional
from sqlalchemy import text
from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql, sqlite

logger = logging.getLogger(__name__)


def dialect_name(db: Session) -> str:
    return db.get_bind().dialect.name


def upsert_insert(db: Session, model):
    """
    INSERT com suporte a ON CONFLICT para o dialeto da sessão.
    """
    if dialect_name(db) == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


def reclaim_storage(db: Session, table_name: str) -> bool:
    """
    Roda VACUUM na tabela logo após exclusões em massa.

    VACUUM não roda dentro de transação: usa uma conexão em AUTOCOMMIT.
    Só executa no PostgreSQL.

    Returns:
        True se executou
    """
    if dialect_name(db) != "postgresql":
        logger.debug(f"VACUUM skipped for {table_name} (dialect {dialect_name(db)})")
        return False

    engine = db.get_bind()
    with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
        conn.execute(text(f"VACUUM {table_name}"))
    logger.info(f"VACUUM completed: {table_name}")
    return True


def reindex_table(db: Session, table_name: str) -> bool:
    if dialect_name(db) != "postgresql":
        return False
    engine = db.get_bind()
    with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
        conn.execute(text(f"REINDEX TABLE {table_name}"))
    logger.info(f"REINDEX completed: {table_name}")
    return True


def table_size(db: Session, table_name: str) -> Optional[dict]:
    """Tamanho total da tabela (pg_total_relation_size), None fora do PostgreSQL."""
    if dialect_name(db) != "postgresql":
        return None
    row = db.execute(
        text(
            "SELECT pg_total_relation_size(:t) AS bytes, "
            "pg_size_pretty(pg_total_relation_size(:t)) AS pretty"
        ),
        {"t": table_name},
    ).first()
    if not row:
        return None
    return {"bytes": int(row.bytes or 0), "pretty": row.pretty}
