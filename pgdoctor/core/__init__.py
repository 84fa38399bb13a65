"""
Core components of pgdoctor.

Contains:
- Data models (Severity, Finding, Report, etc.)
- Checker contract and base class
- Execution context
- Error taxonomy
"""
