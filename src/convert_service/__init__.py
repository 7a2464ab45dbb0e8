"""
File Conversion Service package.

Accepts uploaded documents, converts them with external tools (pandoc,
markitdown, LibreOffice) and exposes the results as downloadable tasks
through a FastAPI application.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
