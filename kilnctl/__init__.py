"""Command-line interface for kiln."""
