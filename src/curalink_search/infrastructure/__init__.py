"""Infrastructure layer: source adapters, local store and caches."""
