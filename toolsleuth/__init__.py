"""toolsleuth: find the tool definition behind a schema validation rejection."""

__version__ = "0.1.0"
