"""
Simple script to create the threads and messages tables.
Run this once to set up the tables in your database.

Usage: python create_tables.py
"""
from typing import Dict

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from models import Base  # Import models to register them
from database import DATABASE_URL, build_engine


def create_tables(engine: Engine) -> Dict[str, bool]:
    """Create all tables and report which ones now exist."""
    Base.metadata.create_all(bind=engine)
    existing = set(inspect(engine).get_table_names())
    return {name: name in existing for name in Base.metadata.tables}


if __name__ == "__main__":
    print("Creating database tables...")
    engine = build_engine(DATABASE_URL)
    
    for table, created in create_tables(engine).items():
        if created:
            print(f"✓ {table.capitalize()} table created successfully!")
        else:
            print(f"✗ Failed to create {table} table")
    
    engine.dispose()
