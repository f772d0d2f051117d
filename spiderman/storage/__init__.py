"""
Storage layer for crawled documents.
"""

from .exporter import DocumentExporter, ExportError, EXPORT_FORMATS

__all__ = ['DocumentExporter', 'ExportError', 'EXPORT_FORMATS']
