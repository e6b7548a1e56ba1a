"""
Abstract interface for the remote assistant round trip.
"""

from abc import ABC, abstractmethod

from ..models.data_models import UploadResult


class AudioUploader(ABC):
    """Single-attempt upload of a recording; no retries."""

    @abstractmethod
    async def upload(self, file_path: str) -> UploadResult:
        """
        Send the recording and save the spoken reply.

        Returns:
            UploadResult with the reply audio path and continuation flag

        Raises:
            UploadFailed: network error, non-success status or empty body
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass
