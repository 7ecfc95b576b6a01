"""askdocs: upload documents and ask questions grounded in their content."""

__version__ = "0.1.0"
