"""Top-level lockdown procedure."""
