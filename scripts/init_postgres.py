"""
Initialize database schema
Creates the vcards, pixels and event_trackings tables
"""
import sys
import os

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import Base, engine
from models.vcard import VCard
from models.pixel import Pixel
from models.event_tracking import EventTracking

def init_database():
    """Create all tables in the database"""
    print("Creating tables...")

    try:
        Base.metadata.create_all(bind=engine)
        print("✓ Tables created successfully!")
        print("\nCreated tables:")
        for table in (VCard, Pixel, EventTracking):
            print(f"  - {table.__tablename__}")

    except Exception as e:
        print(f"✗ Error creating tables: {e}")
        sys.exit(1)

if __name__ == "__main__":
    init_database()
