"""Circuit domain services: terrain, bitmaps, engine, timing and records.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""
