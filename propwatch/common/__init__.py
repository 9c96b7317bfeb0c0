"""Utilities shared by every propwatch subpackage."""
