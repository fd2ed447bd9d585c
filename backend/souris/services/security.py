"""Session tokens and signed score submissions.

A token is generated per circuit load and used as the HMAC key for the
time achieved during that session. The server never stores tokens; it
recomputes the key from the submitted chrono and token.
"""

import hashlib
import hmac
import secrets

KEY_PREFIX = 'MiCetF'
SENTINEL_CHRONO = 360000
DEFAULT_PSEUDO = 'Anonyme'
PSEUDO_MIN_LENGTH = 4
TOKEN_BYTES = 16


class InvalidInput(ValueError):
    """A submission field is missing or malformed."""


class SubmissionRejected(Exception):
    """A well-formed submission that must not reach the leaderboard."""


class SentinelChrono(SubmissionRejected):
    pass


class SignatureMismatch(SubmissionRejected):
    pass


def generate_session_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def compute_key(chrono_centiseconds: int, token: str) -> str:
    """Hex HMAC-SHA256 of ``"MiCetF<chrono>"`` keyed by the session token."""
    message = f"{KEY_PREFIX}{int(chrono_centiseconds)}".encode('utf-8')
    return hmac.new(str(token).encode('utf-8'), message, hashlib.sha256).hexdigest()


def verify_submission(chrono_centiseconds: int, token: str, key: str,
                      sentinel: int = SENTINEL_CHRONO) -> None:
    """Raise unless ``key`` signs ``chrono_centiseconds`` with ``token``.

    The sentinel is checked first: the placeholder chrono is refused even
    when correctly signed.
    """
    if chrono_centiseconds is None or int(chrono_centiseconds) <= 0 or int(chrono_centiseconds) == sentinel:
        raise SentinelChrono('chrono is unset')
    expected = compute_key(chrono_centiseconds, token)
    provided = str(key or '').lower().encode('utf-8')
    if not hmac.compare_digest(expected.encode('utf-8'), provided):
        raise SignatureMismatch('security key does not match')


def validate_pseudo(pseudo, min_length: int = PSEUDO_MIN_LENGTH) -> str:
    """Return the stripped pseudo or raise :class:`InvalidInput`."""
    if pseudo is None or not isinstance(pseudo, str) or not pseudo.strip():
        raise InvalidInput('The pseudo cannot be empty.')
    pseudo = pseudo.strip()
    if len(pseudo) < min_length:
        raise InvalidInput(f'The pseudo must be at least {min_length} characters long.')
    if ',' in pseudo:
        raise InvalidInput('The pseudo cannot contain a comma.')
    if any(ch in pseudo for ch in '\r\n'):
        raise InvalidInput('The pseudo cannot contain line breaks.')
    return pseudo
