"""
Utility functions
"""
from .url_utils import normalize_video_url, video_url_hash, detect_platform, extract_video_id
from .id_generator import generate_id

__all__ = [
    'normalize_video_url',
    'video_url_hash',
    'detect_platform',
    'extract_video_id',
    'generate_id',
]
