"""Process metadata module."""

from src.modules.process_metadata.repository import ProcessMetadataRepository

__all__ = ["ProcessMetadataRepository"]
