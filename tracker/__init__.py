"""Attendance tracking core: markup extraction, caching and projection."""
