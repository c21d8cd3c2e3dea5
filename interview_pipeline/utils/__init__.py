"""Configuration, database, locking and profiling helpers."""
