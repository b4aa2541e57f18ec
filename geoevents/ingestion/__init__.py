"""Event ingestion: source adapters, extraction pipeline and deduplication."""
