from .board import PreviewBoard, PreviewBoards, preview_boards
from .exporter import (
    DocumentExporter,
    EncodedBlob,
    ExportDestination,
    FileResult,
    content_disposition,
    document_exporter,
    export_filename,
    to_data_url,
)

__all__ = [
    "DocumentExporter",
    "EncodedBlob",
    "ExportDestination",
    "FileResult",
    "PreviewBoard",
    "PreviewBoards",
    "content_disposition",
    "document_exporter",
    "export_filename",
    "preview_boards",
    "to_data_url",
]
