"""API module exports"""
from .endpoints import get_recording_service, router

__all__ = ["router", "get_recording_service"]
