"""Domain layer: work items, documents, classification."""
