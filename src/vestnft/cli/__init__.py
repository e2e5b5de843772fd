"""Command line interface for vestnft."""
