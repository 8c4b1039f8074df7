"""Aggregation pipeline, refresh service, configuration store and agenda rendering."""
