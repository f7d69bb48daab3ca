"""
Sales Agent API Module

Provides the FastAPI application factory for the conversation service.
"""

from salesagent.api.server import create_app

__all__ = ['create_app']
