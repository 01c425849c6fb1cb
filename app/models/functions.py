"""Portable SQL functions.

``greatest()`` is the floor-clamp used by every balance debit. PostgreSQL
spells it GREATEST; SQLite (used by the test suite) uses the multi-argument
scalar MAX.
"""

from sqlalchemy import Integer
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import GenericFunction


class greatest(GenericFunction):
    """Largest of its arguments, evaluated per row."""

    type = Integer()
    inherit_cache = True


@compiles(greatest, "sqlite")
def _sqlite_greatest(element, compiler, **kw):
    return "max(%s)" % compiler.process(element.clauses, **kw)
