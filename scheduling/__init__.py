"""Availability computation and booking admission."""
