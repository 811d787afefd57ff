"""Application services."""

from app.services.audio_host import CatboxUploader
from app.services.geocoding import ReverseGeocoder
from app.services.image_host import ImgBBUploader
from app.services.notification import NotificationService
from app.services.youtube import YouTubeService

__all__ = [
    "CatboxUploader",
    "ImgBBUploader",
    "NotificationService",
    "ReverseGeocoder",
    "YouTubeService",
]
