"""
Layer 5 - Document Side Session
Front/back state machine owning the captured image of each side and the
save/retake/switch protocol.
"""
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ..error_handlers import SessionStateError
from ..events import SessionSavedEvent, SideCapturedEvent

logger = logging.getLogger(__name__)


class DocumentSide(Enum):
    FRONT = "front"
    BACK = "back"


@dataclass(frozen=True)
class DocumentCaptureData:
    """Composed result of a capture session."""
    front_image_path: Optional[str] = None
    back_image_path: Optional[str] = None

    @property
    def has_front(self) -> bool:
        return bool(self.front_image_path)

    @property
    def has_back(self) -> bool:
        return bool(self.back_image_path)

    def is_complete_for(self, require_both_sides: bool) -> bool:
        if require_both_sides:
            return self.has_front and self.has_back
        return self.has_front

    def path_for(self, side: DocumentSide) -> Optional[str]:
        if side == DocumentSide.FRONT:
            return self.front_image_path
        return self.back_image_path

    def with_path(self, side: DocumentSide, path: Optional[str]) -> "DocumentCaptureData":
        if side == DocumentSide.FRONT:
            return replace(self, front_image_path=path)
        return replace(self, back_image_path=path)

    def to_dict(self):
        return {
            'front_image_path': self.front_image_path,
            'back_image_path': self.back_image_path,
        }


class CaptureSession:
    """
    Single writer of the per-side image paths.

    displayed_image_path is the transient "currently shown image"; empty
    means the live preview is showing.
    """

    def __init__(
        self,
        require_both_sides: bool = True,
        two_sided: bool = True,
        clear_on_save: bool = False,
        bus=None
    ):
        """
        Initialize session.

        Args:
            require_both_sides: Save needs front and back (two-sided mode only)
            two_sided: Whether the back side can be captured at all
            clear_on_save: Reset the stored sides after a successful save
            bus: Optional EventBus receiving capture and save events
        """
        self.two_sided = two_sided
        self.require_both_sides = require_both_sides and two_sided
        self.clear_on_save = clear_on_save
        self.bus = bus

        self._lock = threading.RLock()
        self.active_side = DocumentSide.FRONT
        self.data = DocumentCaptureData()
        self.displayed_image_path = ""

        if require_both_sides and not two_sided:
            logger.info("Single-sided session: require_both_sides ignored")

    @property
    def front_image_path(self) -> Optional[str]:
        return self.data.front_image_path

    @property
    def back_image_path(self) -> Optional[str]:
        return self.data.back_image_path

    @property
    def needs_live_preview(self) -> bool:
        return not self.displayed_image_path

    @property
    def can_save(self) -> bool:
        return self.data.is_complete_for(self.require_both_sides)

    def _publish(self, event):
        if self.bus is not None:
            self.bus.publish(event)

    def capture_completed(self, side: DocumentSide, path: str):
        """Store the cropped image for a side; the active side does not change."""
        with self._lock:
            if side == DocumentSide.BACK and not self.two_sided:
                raise SessionStateError("store back image", "two-sided mode is off")
            self.data = self.data.with_path(side, path)
            if side == self.active_side:
                self.displayed_image_path = path
            logger.info(f"{side.value} side captured: {path}")
        self._publish(SideCapturedEvent(side=side, path=path))

    def switch_to_back(self):
        with self._lock:
            if not self.two_sided:
                raise SessionStateError("switch to back", "two-sided mode is off")
            if not self.data.has_front:
                raise SessionStateError("switch to back", "front side not captured yet")
            self.active_side = DocumentSide.BACK
            self.displayed_image_path = self.data.back_image_path or ""
            logger.debug("Switched to back side")

    def switch_to_front(self):
        with self._lock:
            self.active_side = DocumentSide.FRONT
            self.displayed_image_path = self.data.front_image_path or ""
            logger.debug("Switched to front side")

    def retake(self):
        """Drop the active side's image; the other side is kept."""
        with self._lock:
            self.data = self.data.with_path(self.active_side, None)
            self.displayed_image_path = ""
            logger.info(f"Retaking {self.active_side.value} side")

    def save(self) -> DocumentCaptureData:
        """
        Emit the composed result.

        Only the displayed image is reset unless clear_on_save is set, in
        which case the whole session starts over.

        Raises:
            SessionStateError: Required sides are missing
        """
        with self._lock:
            if not self.can_save:
                missing = "front side" if not self.data.has_front else "back side"
                raise SessionStateError("save", f"{missing} not captured")
            result = self.data
            self.displayed_image_path = ""
            if self.clear_on_save:
                self._reset_locked()
            logger.info(f"Session saved: {result.to_dict()}")
        self._publish(SessionSavedEvent(data=result))
        return result

    def _reset_locked(self):
        self.active_side = DocumentSide.FRONT
        self.data = DocumentCaptureData()
        self.displayed_image_path = ""

    def reset(self):
        """Start a new document."""
        with self._lock:
            self._reset_locked()
            logger.debug("Session reset")
