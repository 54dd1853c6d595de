"""Settings storage for lockdown policy."""
