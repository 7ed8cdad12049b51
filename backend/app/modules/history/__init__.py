"""History module: append-only record of uploads and transcodes."""
