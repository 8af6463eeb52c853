"""Scoped settings store: locking, atomic writes, backups and merging."""
