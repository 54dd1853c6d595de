"""Volume discovery, mounting and file backups."""
