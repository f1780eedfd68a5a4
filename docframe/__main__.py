"""
Headless capture runner.

Opens the configured camera and model, runs the auto-capture flow and logs
every event until interrupted. Configuration comes from DOCFRAME_* variables.
"""
import logging
import os
import threading

from .config import FlowConfig, configure_logging
from .events import ErrorEvent, SessionSavedEvent, SideCapturedEvent, VerdictEvent
from .flow import DocumentCaptureFlow
from .layer1_capture import CameraFrameSource, CameraStillCapture, YoloLocalizer
from .layer2_alignment import FrameGeometry, fit_guide
from .layer5_session import DocumentSide

logger = logging.getLogger("docframe")


def build_geometry(config: FlowConfig) -> FrameGeometry:
    display_w = float(os.environ.get('DOCFRAME_DISPLAY_WIDTH', 1080))
    display_h = float(os.environ.get('DOCFRAME_DISPLAY_HEIGHT', 2400))
    frame_w, frame_h = fit_guide(
        float(os.environ.get('DOCFRAME_FRAME_WIDTH', 900)),
        float(os.environ.get('DOCFRAME_FRAME_HEIGHT', 1400)),
        display_w,
        display_h,
        max_height_ratio=config.max_guide_height_ratio
    )
    return FrameGeometry(
        display_width=display_w,
        display_height=display_h,
        frame_width=frame_w,
        frame_height=frame_h,
        sensor_orientation=config.camera.sensor_orientation
    )


def main():
    config = FlowConfig.from_env()
    configure_logging(config.log_level)

    source = CameraFrameSource(config.camera.camera_index, config.camera.as_handler_config())
    still = CameraStillCapture(source, output_dir=config.camera.output_dir)
    localizer = YoloLocalizer(
        model_path=config.detector.model_path,
        confidence_threshold=config.detector.confidence_threshold,
        device=config.detector.device
    )
    if not localizer.load_model():
        logger.warning("Running without a loaded model; frames will be skipped")

    done = threading.Event()

    def log_event(event):
        if isinstance(event, VerdictEvent):
            logger.debug(event.verdict.message)
        elif isinstance(event, SideCapturedEvent):
            logger.info(f"Captured {event.side.value}: {event.path}")
        elif isinstance(event, SessionSavedEvent):
            logger.info(f"Saved: {event.data.to_dict()}")
            done.set()
        elif isinstance(event, ErrorEvent):
            logger.error(f"Error: {event.error}")

    flow = DocumentCaptureFlow(
        geometry=build_geometry(config),
        frame_source=source,
        still_capture=still,
        localizer=localizer,
        config=config
    )
    flow.bus.subscribe(log_event)

    def on_side(event):
        # headless: accept each capture and move on
        if not isinstance(event, SideCapturedEvent):
            return
        threading.Thread(target=advance, daemon=True).start()

    def advance():
        session = flow.session
        if session.can_save:
            flow.save()
        elif session.two_sided and session.active_side == DocumentSide.FRONT:
            flow.switch_to_back()

    flow.bus.subscribe(on_side)

    try:
        with flow:
            while not done.wait(0.5):
                pass
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        localizer.close()


if __name__ == "__main__":
    main()
