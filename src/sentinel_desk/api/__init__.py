# API Module - Local REST backend

from .main import app, start_api_server

__all__ = ["app", "start_api_server"]
