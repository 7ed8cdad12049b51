"""Video Upload & Transcoding Backend Application.

Clients upload videos directly to object storage, request transcodes to a
fixed set of quality presets, and browse their videos and history.

Modules:
    - core: Configuration, database, storage, logging, metrics, service container
    - modules.auth: Bearer token verification
    - modules.video: Upload descriptors and the video catalogue
    - modules.transcoding: Quality presets, FFmpeg encoder, transcode pipeline
    - modules.history: Append-only upload/transcode history
"""

__version__ = "0.1.0"
