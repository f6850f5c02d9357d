"""FastAPI dependencies exposing the per-process components stored on app.state."""
from fastapi import Request

from .config import Settings
from .services.archive import ArchiveStreamer
from .services.metadata import TransferMetadataStore
from .storage.provider import StorageProvider


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_metadata_store(request: Request) -> TransferMetadataStore:
    return request.app.state.metadata


def get_archive_streamer(request: Request) -> ArchiveStreamer:
    return request.app.state.archiver
