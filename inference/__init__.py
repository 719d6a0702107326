"""
inference/__init__.py

Leaf-disease inference pipeline: preprocess -> engine -> ranker, plus the
occlusion-saliency explainer.

Import concrete modules directly, e.g.

    from inference.pipeline import LeafClassifier

This file stays import-free so `core.config` can depend on
`inference.config` without pulling in OpenCV or the interpreter.
"""
