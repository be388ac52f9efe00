"""Infrastructure layer module.

Contains configuration, logging, database access and job record storage.
"""
