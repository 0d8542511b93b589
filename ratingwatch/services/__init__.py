"""Business logic: listing queries, recommendation ranking and feed ingestion."""
