import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Leaderboard files (one parcours<N>.txt per circuit)
    RECORDS_DIR = os.environ.get('RECORDS_DIR') or os.path.join(BASE_DIR, 'records')
    # Circuit images (one parcours<N>.png per circuit)
    CIRCUITS_DIR = os.environ.get('CIRCUITS_DIR') or os.path.join(BASE_DIR, 'circuits')
    TOTAL_CIRCUITS = int(os.environ.get('TOTAL_CIRCUITS', '17'))
    # Leaderboard size and the "no time" chrono placeholder (centiseconds)
    MAX_RECORDS = int(os.environ.get('MAX_RECORDS', '10'))
    SENTINEL_CHRONO = int(os.environ.get('SENTINEL_CHRONO', '360000'))
    PSEUDO_MIN_LENGTH = int(os.environ.get('PSEUDO_MIN_LENGTH', '4'))
    # Engine tuning (pixels)
    TELEPORT_DISTANCE = float(os.environ.get('TELEPORT_DISTANCE', '400'))
    COLLISION_TOLERANCE = int(os.environ.get('COLLISION_TOLERANCE', '2'))
    # Bitmap building: thread pool size, and whether to offload at all
    BITMAP_WORKERS = int(os.environ.get('BITMAP_WORKERS', '2'))
    BITMAP_OFFLOAD = os.environ.get('BITMAP_OFFLOAD', '1') not in ('0', 'false', 'False')
