"""Per-circuit top-N leaderboard stored as ``pseudo,chrono`` text lines.

Each circuit has one file, ``parcours<id>.txt``, holding at most
``max_records`` lines sorted by ascending chrono (seconds). Every
read-modify-write of a circuit's file happens under that circuit's lock
stripe.
"""

import logging
import os
import tempfile
import threading
import zlib
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from markupsafe import escape

from .security import (
    SENTINEL_CHRONO,
    PSEUDO_MIN_LENGTH,
    InvalidInput,
    SubmissionRejected,
    validate_pseudo,
    verify_submission,
)

MAX_RECORDS = 10

LOCK_STRIPES = 64
_circuit_locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for_path(path: str) -> threading.Lock:
    # Fixed stripe table: unknown circuit ids never grow it
    return _circuit_locks[zlib.crc32(os.path.abspath(path).encode('utf-8')) % LOCK_STRIPES]


@dataclass
class Record:
    pseudo: str
    chrono: float

    @property
    def centiseconds(self) -> int:
        return int(round(self.chrono * 100))

    def to_line(self) -> str:
        return f"{self.pseudo},{self.chrono:.2f}"

    def to_dict(self) -> dict:
        return {'pseudo': str(escape(self.pseudo)), 'chrono': round(self.chrono, 2)}

    @classmethod
    def from_line(cls, line: str) -> Optional['Record']:
        parts = line.strip().split(',')
        if len(parts) < 2 or not parts[0]:
            return None
        try:
            chrono = float(parts[1])
        except ValueError:
            return None
        if not chrono > 0 or chrono == float('inf'):
            return None
        return cls(pseudo=parts[0], chrono=chrono)


@dataclass
class SubmitResult:
    accepted: bool
    rank: Optional[int]
    records: List[Record] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'success': self.accepted,
            'newRank': self.rank,
            'records': [r.to_dict() for r in self.records],
        }


def insert_record(records: List[Record], record: Record,
                  max_records: int = MAX_RECORDS) -> Tuple[List[Record], Optional[int]]:
    """Insert ``record`` before the first entry that is not strictly faster.

    Returns the truncated list and the 1-based rank of the new entry, or
    ``None`` when it did not make the cut.
    """
    index = bisect_left([r.centiseconds for r in records], record.centiseconds)
    updated = records[:index] + [record] + records[index:]
    updated = updated[:max_records]
    rank = index + 1 if index < max_records else None
    return updated, rank


def parse_circuit_id(value) -> int:
    try:
        circuit_id = int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput('The "circuit" parameter must be an integer.')
    if circuit_id <= 0:
        raise InvalidInput('The "circuit" parameter must be a positive integer.')
    return circuit_id


class Leaderboard:
    def __init__(self, records_dir: str, max_records: int = MAX_RECORDS,
                 sentinel: int = SENTINEL_CHRONO, pseudo_min_length: int = PSEUDO_MIN_LENGTH,
                 logger: Optional[logging.Logger] = None):
        self.records_dir = records_dir
        self.max_records = max_records
        self.sentinel = sentinel
        self.pseudo_min_length = pseudo_min_length
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_app(cls, app) -> 'Leaderboard':
        cfg = app.config
        return cls(
            records_dir=cfg['RECORDS_DIR'],
            max_records=int(cfg.get('MAX_RECORDS', MAX_RECORDS)),
            sentinel=int(cfg.get('SENTINEL_CHRONO', SENTINEL_CHRONO)),
            pseudo_min_length=int(cfg.get('PSEUDO_MIN_LENGTH', PSEUDO_MIN_LENGTH)),
            logger=app.logger,
        )

    def path_for(self, circuit_id) -> str:
        return os.path.join(self.records_dir, f"parcours{parse_circuit_id(circuit_id)}.txt")

    def _read(self, path: str) -> List[Record]:
        if not os.path.exists(path):
            return []
        records = []
        with open(path, encoding='utf-8') as fh:
            for line in fh:
                if not line.strip():
                    continue
                record = Record.from_line(line)
                if record is None:
                    self.logger.warning(f"[records-skip] file={os.path.basename(path)} malformed line {line.strip()!r}")
                    continue
                records.append(record)
        # sorted() is stable, so equal times keep their file order
        return sorted(records, key=lambda r: r.centiseconds)[:self.max_records]

    def _write(self, path: str, records: List[Record]) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix='.parcours', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                for record in records:
                    fh.write(record.to_line() + '\n')
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, circuit_id) -> List[Record]:
        """Current ordered list; empty when the circuit has no file yet."""
        path = self.path_for(circuit_id)
        with _lock_for_path(path):
            return self._read(path)

    def submit(self, circuit_id, pseudo, chrono_centiseconds, token, key) -> SubmitResult:
        """Verify a signed time and insert it into the circuit's ranking.

        Raises :class:`InvalidInput` for malformed fields. A bad signature
        or the sentinel chrono is not an error: the unchanged list is
        returned with ``accepted=False``.
        """
        path = self.path_for(circuit_id)
        pseudo = validate_pseudo(pseudo, self.pseudo_min_length)
        try:
            chrono_centiseconds = int(chrono_centiseconds)
        except (TypeError, ValueError, OverflowError):
            raise InvalidInput('The "chronoCentiseconds" parameter must be an integer.')
        if not token:
            raise InvalidInput('The "token" parameter is required.')

        with _lock_for_path(path):
            records = self._read(path)
            try:
                verify_submission(chrono_centiseconds, token, key, sentinel=self.sentinel)
            except SubmissionRejected as exc:
                self.logger.warning(
                    f"[records-reject] circuit={circuit_id} reason={type(exc).__name__}"
                )
                return SubmitResult(accepted=False, rank=None, records=records)

            new_record = Record(pseudo=pseudo, chrono=chrono_centiseconds / 100)
            updated, rank = insert_record(records, new_record, self.max_records)
            if rank is None:
                self.logger.info(
                    f"[records-miss] circuit={circuit_id} pseudo={pseudo} chrono={new_record.chrono:.2f}"
                )
                return SubmitResult(accepted=False, rank=None, records=records)
            self._write(path, updated)
            self.logger.info(
                f"[records-insert] circuit={circuit_id} pseudo={pseudo} chrono={new_record.chrono:.2f} rank={rank}"
            )
            return SubmitResult(accepted=True, rank=rank, records=updated)

    def reset(self, circuit_id) -> bool:
        """Delete a circuit's leaderboard. Returns False if there was none."""
        path = self.path_for(circuit_id)
        with _lock_for_path(path):
            if not os.path.exists(path):
                return False
            os.remove(path)
            self.logger.info(f"[records-reset] circuit={circuit_id}")
            return True
