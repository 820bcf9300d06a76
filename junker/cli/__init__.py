"""JUNKER command-line interface."""
