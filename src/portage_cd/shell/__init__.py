"""Argument-vector builders for the external tools the pipeline drives."""
