"""Service layer for WP AI Manager.

Services are constructed once per process (see ``container.py``) or per
request around a database session, and passed explicitly to their callers.
"""
