"""NFL data sync: SportsData.io ingestion into a document store with a read API."""

__version__ = "1.0.0"
