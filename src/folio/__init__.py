"""
Folio - SQLite-style database access for the Folio library catalog on PostgreSQL.
"""

__version__ = "0.1.0"

from folio.core import *  # noqa
