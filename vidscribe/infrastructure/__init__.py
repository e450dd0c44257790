"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- gemini: Gemini Files API and generative model (google-generativeai)
- downloader: YouTube downloads (yt-dlp)
- video: single-frame capture (FFmpeg)
- storage: local video cache and retention sweep

These wrappers translate between external formats and our domain models.
"""
