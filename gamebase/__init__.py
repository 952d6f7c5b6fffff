"""Game support utilities: sprite atlases and packing, PNG I/O, collision, chunks, WAV loading and audio mixing."""

__version__ = "0.1.0"