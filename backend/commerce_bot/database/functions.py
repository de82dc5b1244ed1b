"""
Accent-insensitive matching for product names.

``fold(x)`` lower-cases and strips Spanish accents. On PostgreSQL it compiles to
``lower(translate(x, ...))``; on SQLite a Python function of the same name is
registered on every new connection.
"""
import sqlite3

from sqlalchemy import String, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import GenericFunction

from commerce_bot.utils.text import fold_accents

ACCENTED = "ñáéíóúüÑÁÉÍÓÚÜ"
PLAIN = "naeiouuNAEIOUU"


class fold(GenericFunction):
    type = String()
    name = "fold"
    inherit_cache = True


@compiles(fold, "postgresql")
def _compile_fold_postgresql(element, compiler, **kw):
    argument = compiler.process(element.clauses, **kw)
    return f"lower(translate({argument}, '{ACCENTED}', '{PLAIN}'))"


@event.listens_for(Engine, "connect")
def _register_sqlite_functions(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function("fold", 1, fold_accents)
