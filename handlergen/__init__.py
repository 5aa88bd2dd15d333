"""Generate Elasticsearch REST handler classes from the compiled API schema."""

__version__ = "0.1.0"
