"""
Database layer: models, engine and session factories.
"""
