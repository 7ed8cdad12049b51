"""Transcoding module for video encoding.

Streams a stored original through FFmpeg to one of the quality presets and
stores the fragmented MP4 result.
"""
