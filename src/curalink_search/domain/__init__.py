"""Domain layer: canonical records and the trial vocabulary."""
