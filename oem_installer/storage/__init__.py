"""Block device discovery, layout planning and device primitives."""
