"""Command line interface for pgcluster."""
