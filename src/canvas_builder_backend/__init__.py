"""
Canvas Builder Backend - REST API for building and exporting drawings

This package provides a FastAPI-based web service that lets a client:

- Create a fixed-size drawing canvas
- Append rectangles, circles, text and images to it, one element at a time
- Export the accumulated drawing as a single-page PDF

Key Components:
    - main: FastAPI application factory and HTTP endpoint definitions
    - canvas_service: Coordinates storage, uploads, rendering and export
    - storage / database: Canvas record store and its file, memory and SQLite backends
    - uploads: Disk or in-memory storage for uploaded images
    - ingestion: Lenient normalization of element payloads
    - renderer: Pillow-based replay of elements onto a raster surface
    - exporter: reportlab PDF output, with a text fallback rendition
    - configuration: Settings loading and environment overrides

Usage:
    Run the API server with:
        uvicorn canvas_builder_backend.main:app --reload --host 0.0.0.0 --port 5000

Architecture Principles:
    - Insertion order is paint order; elements are never edited or removed
    - One bad element never aborts an export
    - Storage and render backends are chosen once, at startup, from configuration
"""
