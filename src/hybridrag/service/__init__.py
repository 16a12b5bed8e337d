"""Service layer: storage adapters, hybrid search, ingestion and event relay."""
