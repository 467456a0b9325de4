"""Command line actions for retail-ci."""
