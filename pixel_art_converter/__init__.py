"""Turn photos into gridded pixel art with a median-cut palette."""
