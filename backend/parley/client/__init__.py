"""Programmatic client for the chat endpoints."""

from .chat_controller import ChatStreamController, ControllerState, SSELineBuffer

__all__ = ["ChatStreamController", "ControllerState", "SSELineBuffer"]
