"""Portage - a portable, opinionated security pipeline."""

__version__ = "0.1.0"
