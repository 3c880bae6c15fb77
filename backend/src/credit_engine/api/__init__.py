"""HTTP surface of the credit engine."""
