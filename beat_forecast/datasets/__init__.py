"""Dataset implementations (ingest, preprocess, feature building)."""
