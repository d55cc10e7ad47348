"""JSON schemas for Level Collector configuration files.

- merge_config.schema.json: duplicate analysis and merge settings
"""
