"""
Remote Layer Storage

Publishes built layers to AWS S3.
"""

from .s3 import S3LayerStore

__all__ = [
    'S3LayerStore',
]
