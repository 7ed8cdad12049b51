"""Application modules.

- auth: Bearer token verification
- video: Upload descriptors and the video catalogue
- transcoding: Quality presets, FFmpeg encoder, transcode pipeline
- history: Append-only upload/transcode history
"""
