"""
dbdrill - interactive drill-down browser for PostgreSQL

Entities, searches and links are declared in a resources file; the TUI
lets you run a search, pick a row and follow links to related rows.
"""

__version__ = "0.3.0"
