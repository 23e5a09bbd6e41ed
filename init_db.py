"""
Database initialization script
Run with: python init_db.py
"""

from app import create_app
from models import db


def initialize_database():
    """Create every bracket table if missing"""
    app = create_app()
    with app.app_context():
        print("Creating database tables...")
        db.create_all()
        print("✅ Database initialized successfully!")


if __name__ == "__main__":
    initialize_database()
