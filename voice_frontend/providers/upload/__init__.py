from .http_uploader import HttpUploader

__all__ = ['HttpUploader']
