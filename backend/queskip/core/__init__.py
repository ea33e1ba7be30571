"""Core utilities: configuration, security, access control."""
