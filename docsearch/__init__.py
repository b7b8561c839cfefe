"""Document search service: upload files, ask questions answered from them."""

__version__ = "0.1.0"
