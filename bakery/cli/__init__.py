"""Command line interface for Bakery."""
