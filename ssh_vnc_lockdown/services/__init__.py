"""Service-level edits: users, descriptors, sshd config, boot security."""
