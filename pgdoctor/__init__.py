"""
pgdoctor: PostgreSQL health diagnostics.

Runs a catalog of independent read-only checks against a running database
and produces a severity-classified report:
- Configuration (timeouts, vacuum settings, version)
- Connections, cache, temp files and replication
- Vacuum, bloat and transaction ID freeze age
- Indexes and sequences

Usage:
    pgdoctor run --preset triage
    python -m pgdoctor list
"""

__version__ = "1.0.0"
