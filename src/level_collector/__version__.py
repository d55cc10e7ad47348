__version__ = "1.2.0"
__schema_version__ = "1.0"
