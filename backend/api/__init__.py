"""
Meme Booth API package.

Provides the FastAPI application for the booth's credit purchase flow.
Import the application from ``api.app``.
"""
