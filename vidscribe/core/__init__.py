"""
Core business logic for turning videos into written content.

This package is framework-agnostic. It doesn't import FastAPI, Gemini or
yt-dlp; collaborators are reached through protocols, so the pipeline can
be tested end to end with in-memory fakes.
"""
