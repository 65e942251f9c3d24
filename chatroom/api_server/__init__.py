"""
API Server package for the chatroom.

This package provides the FastAPI application that exposes the chat protocol
over a WebSocket endpoint, plus a health check.
"""

from .main import ChatroomAPIServer, build_ai_engine, create_api_server

__all__ = ["ChatroomAPIServer", "build_ai_engine", "create_api_server"]
