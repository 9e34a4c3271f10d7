"""Command line interface for dailyctl."""
