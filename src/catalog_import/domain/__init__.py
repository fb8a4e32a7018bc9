"""Domain layer: model, ports and the import pipeline."""
