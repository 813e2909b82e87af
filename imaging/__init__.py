"""Imaging package for the template renderer.

This package contains the building blocks of the render pipeline:
request models, stage errors, background fetching, Pillow based image
operations, vector masks and asset storage. The orchestration of these
pieces lives in ``pipeline.render_pipeline``. See individual modules for
details.
"""
