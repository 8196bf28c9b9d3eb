"""
database - Database Module

Contains the SQLAlchemy ORM models and the identity store built on them.
Part of Lantern - Conversational Turn Dispatcher.
"""
