"""Planning services: segments, anchors, generation, storage and edits."""
