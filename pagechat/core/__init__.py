"""GUI-independent core: selection capture, annotations and streaming chat."""
