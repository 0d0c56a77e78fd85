"""Utility modules: exceptions, logging and path helpers."""
