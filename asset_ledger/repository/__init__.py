"""Repository layer: SQL access helpers for PostgreSQL and SQLite.

Keep functions thin and focused, so services avoid SQL strings.
Every function takes an open Connection; transactions belong to the caller.
"""
from __future__ import annotations
