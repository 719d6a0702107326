"""ui/__init__.py - OpenCV preview overlay and heatmap compositing."""
