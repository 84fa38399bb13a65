"""
Data access for pgdoctor.

Contains:
- Typed query rows
- SQL statement loader
- asyncpg query layer and connection pool
"""
