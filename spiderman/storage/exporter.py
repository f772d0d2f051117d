"""
File export for crawled documents.
Writes JSON Lines (one document per line, appended) or a single JSON array.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..crawler.document import Document


EXPORT_FORMATS = ('jsonl', 'json')


class ExportError(Exception):
    """Custom exception for export operations."""
    pass


class DocumentExporter:
    """
    Exports documents into files under an output directory.

    In "jsonl" mode every handled document is appended to the export file
    as it arrives. In "json" mode documents are buffered and written as
    one pretty-printed array when the exporter is closed.
    """

    def __init__(self, output_dir: str = 'output', filename: Optional[str] = None,
                 export_format: str = 'jsonl'):
        if export_format not in EXPORT_FORMATS:
            raise ValueError(f"Export format must be one of {', '.join(EXPORT_FORMATS)}")

        self.output_dir = Path(output_dir)
        self.export_format = export_format
        self.filename = filename or f"documents.{export_format}"
        self.logger = logging.getLogger(__name__)
        self._buffer: List[Document] = []
        self.stats = {
            'documents_exported': 0,
            'export_errors': 0,
            'bytes_written': 0
        }

    def __call__(self, document: Document):
        self.handle_document(document)

    def initialize(self):
        """Create the output directory."""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportError(f"Failed to create output directory {self.output_dir}: {e}") from e

        self.logger.info(f"Exporting documents to {self.output_path()} ({self.export_format})")

    def output_path(self, filename: Optional[str] = None) -> Path:
        return self.output_dir / (filename or self.filename)

    def dir_exists(self) -> bool:
        return self.output_dir.exists()

    def handle_document(self, document: Document):
        """Export one crawled document according to the configured format."""
        if self.export_format == 'json':
            self._buffer.append(document)
        else:
            self.export_document(document)

    def export_document(self, document: Document, filename: Optional[str] = None):
        """Append one document as a JSON line."""
        self.export_batch([document], filename)

    def export_batch(self, documents: Iterable[Document], filename: Optional[str] = None) -> int:
        """
        Append documents as JSON lines.

        Returns:
            Number of documents written
        """
        lines = [document.to_json() + '\n' for document in documents]
        if not lines:
            return 0

        self._write(self.output_path(filename), ''.join(lines), mode='a')
        self.stats['documents_exported'] += len(lines)
        return len(lines)

    def export_json_array(self, documents: Iterable[Document], filename: Optional[str] = None) -> int:
        """
        Write documents as one pretty-printed JSON array, replacing the file.

        Returns:
            Number of documents written
        """
        records = [document.to_dict() for document in documents]
        text = json.dumps(records, ensure_ascii=False, indent=2) + '\n'

        self._write(self.output_path(filename), text, mode='w')
        self.stats['documents_exported'] += len(records)
        return len(records)

    def clear_output_dir(self):
        """Remove the files directly under the output directory."""
        if not self.output_dir.exists():
            return
        for path in self.output_dir.iterdir():
            if path.is_file():
                path.unlink()

    def close(self):
        """Flush buffered documents."""
        if self.export_format == 'json' and self._buffer:
            self.export_json_array(self._buffer)
            self._buffer = []

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()

    def _write(self, path: Path, text: str, mode: str):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, mode, encoding='utf-8') as file:
                file.write(text)
        except OSError as e:
            self.stats['export_errors'] += 1
            raise ExportError(f"Failed to write {path}: {e}") from e

        self.stats['bytes_written'] += len(text.encode('utf-8'))
        self.logger.debug(f"Wrote {len(text)} characters to {path}")
