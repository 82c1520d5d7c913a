"""
Infrastructure package - external dependencies and integrations.

Modules:
- rekognition.py - Recognition service interface and AWS Rekognition adapter
- minio_storage.py - Photo object storage
"""

from infrastructure.rekognition import RecognitionBackend, RekognitionBackend, get_recognition_backend
from infrastructure.minio_storage import MinioStorage, get_minio_storage

__all__ = [
    'RecognitionBackend',
    'RekognitionBackend',
    'get_recognition_backend',
    'MinioStorage',
    'get_minio_storage',
]
