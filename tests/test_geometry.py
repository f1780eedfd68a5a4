"""
Tests for the coordinate geometry functions.
"""
import itertools

import pytest

from docframe.layer2_alignment.geometry import (
    CropRectangle,
    FrameGeometry,
    Rect,
    analysis_space,
    clamp_crop,
    fit_guide,
    map_to_image_pixels,
    scale_rect,
    target_rect,
)


class TestAnalysisSpace:
    """Test detector coordinate space resolution."""

    def test_landscape_buffer_is_rotated(self):
        """Test a landscape buffer swaps to portrait analysis space."""
        assert analysis_space(3840, 2160) == (2160, 3840, True)

    def test_portrait_buffer_is_unchanged(self):
        """Test a portrait buffer keeps its dimensions."""
        assert analysis_space(1080, 1920) == (1080, 1920, False)

    def test_square_buffer_is_not_rotated(self):
        """Test a square buffer is not treated as landscape."""
        assert analysis_space(1000, 1000) == (1000, 1000, False)


class TestFrameGeometry:
    """Test FrameGeometry validation and derived values."""

    def test_rejects_unknown_orientation(self):
        """Test sensor orientation outside 0/90/180/270 is rejected."""
        with pytest.raises(ValueError):
            FrameGeometry(1080, 2400, 900, 1400, sensor_orientation=45)

    def test_rejects_non_positive_sizes(self):
        """Test zero display or frame sizes are rejected."""
        with pytest.raises(ValueError):
            FrameGeometry(0, 2400, 900, 1400)
        with pytest.raises(ValueError):
            FrameGeometry(1080, 2400, 900, 0)

    def test_no_aspect_ratio_means_no_letterbox(self, portrait_geometry):
        """Test preview fills the display when no aspect ratio is given."""
        assert portrait_geometry.fitted_preview_height == 2400
        assert portrait_geometry.vertical_offset == 0

    def test_letterbox_offset(self):
        """Test a 16:9 preview on a 1080x2400 display leaves a 240px band on each side."""
        geometry = FrameGeometry(1080, 2400, 900, 1400, preview_aspect_ratio=16 / 9)
        assert geometry.fitted_preview_height == pytest.approx(1920)
        assert geometry.vertical_offset == pytest.approx(-240)

    def test_frame_top_defaults_to_centre(self, portrait_geometry):
        """Test the guide is vertically centred when no top is given."""
        assert portrait_geometry.frame_top_on_screen == 500


class TestTargetRect:
    """Test guide rectangle computation in analysis space."""

    def test_reference_scenario(self, portrait_geometry):
        """Test 900x1400 guide on 1080x2400 over a 3840x2160 buffer."""
        aw, ah, rotated = analysis_space(3840, 2160)
        rect = target_rect(portrait_geometry, aw, ah)

        assert rotated is True
        assert (aw, ah) == (2160, 3840)
        assert rect.width == 1800
        assert rect.height == 2240
        assert rect.left == 180
        assert rect.top == 800

    def test_rect_is_horizontally_centred(self, portrait_geometry):
        """Test left and right margins are equal."""
        rect = target_rect(portrait_geometry, 2160, 3840)
        assert rect.left == 2160 - rect.right

    def test_letterbox_shifts_and_scales(self):
        """Test the guide is positioned on the preview, not the display."""
        geometry = FrameGeometry(
            display_width=1080,
            display_height=2400,
            frame_width=900,
            frame_height=960,
            preview_aspect_ratio=16 / 9,
            frame_top=720
        )
        rect = target_rect(geometry, 1080, 1920)

        # fitted preview = 1920, offset = -240, top on preview = 480
        assert rect.top == 480
        assert rect.height == 960
        assert rect.width == 900

    def test_explicit_frame_top(self):
        """Test an explicit guide top is honoured."""
        geometry = FrameGeometry(1000, 2000, 500, 500, frame_top=200)
        rect = target_rect(geometry, 1000, 2000)
        assert rect.top == 200
        assert rect.left == 250


class TestFitGuide:
    """Test guide size capping."""

    def test_caps_width_to_display(self):
        """Test a guide wider than the display is narrowed."""
        assert fit_guide(1500, 500, 1080, 2400) == (1080, 500)

    def test_caps_height_to_share_of_display(self):
        """Test a guide taller than 45% of the display is shortened."""
        width, height = fit_guide(900, 1400, 1080, 2400)
        assert width == 900
        assert height == pytest.approx(1080)

    def test_small_guide_unchanged(self):
        """Test a guide that fits is returned as is."""
        assert fit_guide(600, 400, 1080, 2400) == (600, 400)


class TestMapToImagePixels:
    """Test inverse rotation onto the saved image."""

    RECT = Rect(left=180, top=800, width=1800, height=2240)

    def test_orientation_90(self):
        """Test the 90-degree inverse rotation formula."""
        crop = map_to_image_pixels(self.RECT, 90, True, 3840, 2160)
        assert crop == CropRectangle(x=800, y=2160 - 180 - 1800, width=2240, height=1800)

    def test_orientation_270(self):
        """Test the 270-degree inverse rotation formula."""
        crop = map_to_image_pixels(self.RECT, 270, True, 3840, 2160)
        assert crop == CropRectangle(x=3840 - 800 - 2240, y=180, width=2240, height=1800)

    @pytest.mark.parametrize("orientation", [0, 180])
    def test_orientation_0_and_180_are_identity(self, orientation):
        """Test 0 and 180 degrees map without rotation."""
        crop = map_to_image_pixels(self.RECT, orientation, True, 2160, 3840)
        assert crop == CropRectangle(x=180, y=800, width=1800, height=2240)

    def test_unrotated_buffer_is_identity(self):
        """Test no rotation is applied when the buffer was not rotated."""
        crop = map_to_image_pixels(self.RECT, 90, False, 2160, 3840)
        assert crop == CropRectangle(x=180, y=800, width=1800, height=2240)

    def test_dedicated_180_mapping(self):
        """Test the optional 180-degree mapping mirrors both axes."""
        crop = map_to_image_pixels(self.RECT, 180, False, 2160, 3840, rotate_180=True)
        assert crop == CropRectangle(x=180, y=3840 - 800 - 2240, width=1800, height=2240)

    def test_result_is_clamped(self):
        """Test a rectangle larger than the image is clamped inside it."""
        crop = map_to_image_pixels(Rect(-50, -50, 5000, 5000), 0, False, 1000, 800)
        assert crop == CropRectangle(x=0, y=0, width=1000, height=800)

    @pytest.mark.parametrize("orientation", [0, 90, 180, 270])
    def test_crop_always_inside_image(self, orientation):
        """Test every orientation yields a crop inside the image across layouts."""
        displays = [(1080, 2400), (720, 1280), (1440, 3200)]
        guides = [(900, 1400), (1080, 1080), (300, 200), (1440, 3200)]
        aspects = [None, 16 / 9, 4 / 3, 2.5]
        buffers = [(3840, 2160), (1920, 1080), (1080, 1920)]

        for (dw, dh), (fw, fh), aspect, (bw, bh) in itertools.product(displays, guides, aspects, buffers):
            geometry = FrameGeometry(dw, dh, fw, fh, preview_aspect_ratio=aspect,
                                     sensor_orientation=orientation)
            aw, ah, rotated = analysis_space(bw, bh)
            rect = target_rect(geometry, aw, ah)
            crop = map_to_image_pixels(rect, orientation, rotated, bw, bh)

            assert crop.x >= 0 and crop.y >= 0
            assert crop.width >= 0 and crop.height >= 0
            assert crop.x + crop.width <= bw
            assert crop.y + crop.height <= bh


class TestHelpers:
    """Test scaling and clamping helpers."""

    def test_scale_rect(self):
        """Test a rect doubles when the target space doubles."""
        rect = scale_rect(Rect(10, 20, 30, 40), (100, 200), (200, 400))
        assert rect == Rect(20, 40, 60, 80)

    def test_clamp_reports_movement(self):
        """Test clamping flags an out-of-bounds crop."""
        crop, clamped = clamp_crop(-10, 5, 100, 50, 80, 80)
        assert clamped is True
        assert crop == CropRectangle(x=0, y=5, width=80, height=50)

    def test_clamp_in_bounds_is_untouched(self):
        """Test an in-bounds crop is not flagged."""
        crop, clamped = clamp_crop(10, 10, 20, 20, 100, 100)
        assert clamped is False
        assert crop == CropRectangle(x=10, y=10, width=20, height=20)

    def test_clamp_fully_outside(self):
        """Test a crop entirely outside the image collapses to zero size at the edge."""
        crop, clamped = clamp_crop(200, 200, 50, 50, 100, 100)
        assert clamped is True
        assert crop.width == 0 and crop.height == 0
        assert crop.x + crop.width <= 100
