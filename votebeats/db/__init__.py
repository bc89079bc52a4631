"""
Database package - engine, sessions and ORM models
"""
