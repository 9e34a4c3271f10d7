"""Core infrastructure: paths, settings, exit codes, cleanup and locking."""
