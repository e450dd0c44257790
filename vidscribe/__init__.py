"""
Vidscribe - turn YouTube videos into SEO metadata and illustrated articles.

This package contains the complete application:
- core: Framework-agnostic content pipeline logic
- infrastructure: Gemini, yt-dlp, ffmpeg and local filesystem integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
