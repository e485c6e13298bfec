"""chunkscribe: size-aware media transcription workflow with caption merging."""

__version__ = "0.1.0"
