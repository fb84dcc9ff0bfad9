"""Payments service domain logic."""
