import pytest

from mobile_crop_tool.errors import InvalidDimensions, SourceNotReady, SupersededResult
from mobile_crop_tool.models import Point, Size
from mobile_crop_tool.render import render_output
from mobile_crop_tool.session import CropSession, SessionState


@pytest.fixture
def session(make_image, display_size):
    """Session holding a decoded 4000×3000 image displayed at 400×300."""
    s = CropSession()
    s.load_image(make_image(4000, 3000))
    s.set_display_size(display_size)
    return s


def _render(job):
    return render_output(job.source, job.crop, job.spec)


# =============================================================================
# Loading
# =============================================================================
def test_new_session_is_empty():
    s = CropSession()
    assert s.state == SessionState.EMPTY
    assert s.dimensions is None
    assert not s.is_processing


def test_crop_before_decode_is_refused():
    s = CropSession()
    with pytest.raises(SourceNotReady):
        s.request_crop()
    s.begin_load()
    assert s.is_loading
    with pytest.raises(SourceNotReady):
        s.request_crop()


def test_complete_load_sets_natural_size(make_image):
    s = CropSession()
    ticket = s.begin_load()
    s.complete_load(ticket, make_image(640, 480))
    assert s.state == SessionState.LOADED
    assert s.natural_size == Size(640, 480)
    assert not s.is_loading


def test_stale_load_is_superseded(make_image):
    s = CropSession()
    first = s.begin_load()
    second = s.begin_load()
    with pytest.raises(SupersededResult):
        s.complete_load(first, make_image(10, 10))
    s.complete_load(second, make_image(20, 20))
    assert s.natural_size == Size(20, 20)


def test_fail_load_returns_to_empty():
    s = CropSession()
    ticket = s.begin_load()
    s.fail_load(ticket)
    assert s.state == SessionState.EMPTY
    assert not s.is_loading


def test_new_image_resets_everything(session, make_image):
    session.set_focal_point(Point(10, 10))
    job = session.request_crop()
    session.complete_crop(job, _render(job))

    session.begin_load()
    assert session.state == SessionState.EMPTY
    assert session.focal_point is None
    assert session.crop_rect is None
    assert session.output is None
    assert session.dimensions is None


# =============================================================================
# Focal point
# =============================================================================
def test_focal_point_requires_image():
    with pytest.raises(SourceNotReady):
        CropSession().set_focal_point(Point(1, 1))


def test_focal_point_requires_display_size(make_image):
    s = CropSession()
    s.load_image(make_image(100, 100))
    with pytest.raises(InvalidDimensions):
        s.set_focal_point(Point(1, 1))


def test_focal_point_is_mapped_to_natural(session):
    session.set_focal_point(Point(100, 50))
    assert session.focal_point_natural() == Point(1000, 500)


def test_focal_point_outside_image_is_clamped(session):
    session.set_focal_point(Point(-20, 999))
    assert session.focal_point == Point(0, 300)


def test_display_resize_keeps_focal_on_same_pixel(session):
    session.set_focal_point(Point(100, 75))
    session.set_display_size(Size(800, 600))
    assert session.focal_point == Point(200, 150)
    assert session.focal_point_natural() == Point(1000, 750)


def test_invalid_display_size_is_rejected(session):
    with pytest.raises(InvalidDimensions):
        session.set_display_size(Size(0, 0))


# =============================================================================
# Cropping
# =============================================================================
def test_crop_without_focal_point_is_centered(session):
    job = session.request_crop()
    assert job.crop.x == pytest.approx(1156.25)
    assert job.crop.y == 0
    assert session.is_processing


def test_crop_uses_focal_point(session):
    session.set_focal_point(Point(0, 150))
    job = session.request_crop()
    assert job.crop.x == 0


def test_complete_crop_moves_to_cropped(session):
    job = session.request_crop()
    output = _render(job)
    session.complete_crop(job, output)
    assert session.state == SessionState.CROPPED
    assert session.output is output
    assert session.crop_rect == job.crop
    assert not session.is_processing


def test_later_crop_request_wins(session):
    first = session.request_crop()
    second = session.request_crop()
    with pytest.raises(SupersededResult):
        session.complete_crop(first, _render(first))
    session.complete_crop(second, _render(second))
    assert session.state == SessionState.CROPPED


def test_late_result_after_newer_one_is_dropped(session):
    first = session.request_crop()
    second = session.request_crop()
    second_output = _render(second)
    session.complete_crop(second, second_output)
    with pytest.raises(SupersededResult):
        session.complete_crop(first, _render(first))
    assert session.output is second_output


def test_new_image_invalidates_in_flight_crop(session, make_image):
    job = session.request_crop()
    session.load_image(make_image(100, 100))
    with pytest.raises(SupersededResult):
        session.complete_crop(job, _render(job))
    assert session.state == SessionState.LOADED
    assert session.output is None


def test_focal_change_invalidates_in_flight_crop(session):
    job = session.request_crop()
    session.set_focal_point(Point(10, 10))
    assert not session.is_processing
    with pytest.raises(SupersededResult):
        session.complete_crop(job, _render(job))


def test_focal_change_discards_output(session):
    job = session.request_crop()
    session.complete_crop(job, _render(job))
    session.set_focal_point(Point(10, 10))
    assert session.state == SessionState.LOADED
    assert session.output is None


def test_clear_focal_point(session):
    session.set_focal_point(Point(10, 10))
    session.clear_focal_point()
    assert session.focal_point is None
    assert session.state == SessionState.LOADED


def test_discard_crop_keeps_focal_point(session):
    session.set_focal_point(Point(10, 10))
    job = session.request_crop()
    session.complete_crop(job, _render(job))
    session.discard_crop()
    assert session.state == SessionState.LOADED
    assert session.focal_point == Point(10, 10)
    assert session.output is None


def test_fail_crop_clears_processing(session):
    job = session.request_crop()
    session.fail_crop(job)
    assert not session.is_processing
    assert session.state == SessionState.LOADED


def test_reset_invalidates_everything(session):
    job = session.request_crop()
    session.reset()
    assert session.state == SessionState.EMPTY
    with pytest.raises(SupersededResult):
        session.complete_crop(job, _render(job))


def test_session_is_reusable_after_reset(session, make_image):
    session.reset()
    session.load_image(make_image(1000, 2000))
    session.set_display_size(Size(100, 200))
    job = session.request_crop()
    assert job.crop.w == 1000


def test_preview_crop_matches_request(session):
    session.set_focal_point(Point(300, 20))
    assert session.preview_crop() == session.request_crop().crop
    assert CropSession().preview_crop() is None


def test_stale_failures_raise_superseded(session, make_image):
    old_ticket = session.begin_load()
    session.load_image(make_image(100, 100))
    with pytest.raises(SupersededResult):
        session.fail_load(old_ticket)

    session.set_display_size(Size(100, 100))
    old_job = session.request_crop()
    session.request_crop()
    with pytest.raises(SupersededResult):
        session.fail_crop(old_job)
    assert session.is_processing
