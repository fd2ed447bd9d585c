import io
import os
import sys
import pytest

# Ensure the backend root (containing the `souris` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from PIL import Image, ImageDraw

from souris import create_app, socketio

WHITE = (255, 255, 255, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
RED = (255, 0, 0, 255)

# Test circuit: 60x20, a horizontal 4px band on rows 8..11
#   START  x 2..5, PATH x 6..49, FINISH x 50..54
CIRCUIT_SIZE = (60, 20)
START_BOX = (2, 8, 5, 11)
PATH_BOX = (6, 8, 49, 11)
FINISH_BOX = (50, 8, 54, 11)
NOISE_PIXEL = (30, 2)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    TOTAL_CIRCUITS = 17
    MAX_RECORDS = 10
    SENTINEL_CHRONO = 360000
    PSEUDO_MIN_LENGTH = 4
    TELEPORT_DISTANCE = 400.0
    COLLISION_TOLERANCE = 2
    BITMAP_WORKERS = 1
    BITMAP_OFFLOAD = False


def _to_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture()
def make_png():
    """Factory: ``make_png(size, [(box, colour), ...], pixels=[(xy, colour)])``."""
    def _make(size=CIRCUIT_SIZE, boxes=(), pixels=(), background=WHITE):
        img = Image.new('RGBA', size, background)
        draw = ImageDraw.Draw(img)
        for box, colour in boxes:
            draw.rectangle(box, fill=colour)
        for xy, colour in pixels:
            img.putpixel(xy, colour)
        return _to_png(img)
    return _make


@pytest.fixture()
def circuit_png(make_png):
    return make_png(
        boxes=[(START_BOX, GREEN), (PATH_BOX, BLUE), (FINISH_BOX, RED)],
        pixels=[(NOISE_PIXEL, BLUE)],
    )


@pytest.fixture()
def circuits_dir(tmp_path, circuit_png):
    directory = tmp_path / 'circuits'
    directory.mkdir()
    (directory / 'parcours1.png').write_bytes(circuit_png)
    (directory / 'parcours2.png').write_bytes(b'this is not an image')
    return directory


@pytest.fixture()
def records_dir(tmp_path):
    return tmp_path / 'records'


@pytest.fixture()
def flask_app(circuits_dir, records_dir):
    class Config(TestConfig):
        RECORDS_DIR = str(records_dir)
        CIRCUITS_DIR = str(circuits_dir)

    application = create_app(Config)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
