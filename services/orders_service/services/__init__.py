"""Order service domain logic."""
