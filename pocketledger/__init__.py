"""Session, categorization and device-storage core for the pocketledger client."""

__version__ = "0.1.0"
