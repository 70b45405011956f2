"""HTTP surface for the collector and analytics."""
