"""
Vision model and browser capture collaborators.
"""

from app.scraping.vision.adapter import (
    BaseVisionAdapter,
    MockVisionAdapter,
    OpenAIVisionAdapter,
    VisionReply,
)
from app.scraping.vision.capture import BasePageCapture, PageSnapshot, PlaywrightPageCapture

__all__ = [
    "BasePageCapture",
    "BaseVisionAdapter",
    "MockVisionAdapter",
    "OpenAIVisionAdapter",
    "PageSnapshot",
    "PlaywrightPageCapture",
    "VisionReply",
]
