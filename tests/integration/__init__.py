"""
Integration tests.

Component interactions against real local backends (SQLite through
SQLAlchemy + aiosqlite); slower than the unit suites.
"""
