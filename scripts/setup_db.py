"""
Database setup script for PlanMatch.
Creates the structure tables and reports their contents.
"""

import sys
from pathlib import Path

from loguru import logger

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from planmatch.config import get_database_url, load_config
from planmatch.exceptions import StorageError
from planmatch.indexing.database import DatabaseManager


def setup_database(database_url: str):
    """Set up database tables."""
    logger.info("Setting up structure database")

    db_manager = DatabaseManager(database_url)

    stats = db_manager.get_database_stats()
    logger.info(f"Database holds {stats['floors']} floors and {stats['rooms']} rooms")

    db_manager.close()


def main():
    """Main setup function."""
    logger.info("Starting PlanMatch database setup...")

    config = load_config()

    try:
        setup_database(get_database_url(config))
        logger.info("PlanMatch setup completed successfully!")

    except StorageError as e:
        logger.error(f"Setup failed: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
