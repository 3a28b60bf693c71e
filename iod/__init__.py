"""IoD package server: signed package containers and the catalog that serves them."""

__version__ = "0.1.0"
