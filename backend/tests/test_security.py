import hashlib
import hmac

import pytest

from souris.services.security import (
    SENTINEL_CHRONO,
    InvalidInput,
    SentinelChrono,
    SignatureMismatch,
    compute_key,
    generate_session_token,
    validate_pseudo,
    verify_submission,
)


def test_tokens_are_random_hex():
    tokens = {generate_session_token() for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert len(token) == 32
        int(token, 16)


def test_compute_key_is_hmac_sha256_of_prefixed_chrono():
    expected = hmac.new(b'tokenA', b'MiCetF500', hashlib.sha256).hexdigest()
    assert compute_key(500, 'tokenA') == expected


def test_keys_differ_per_token_and_chrono():
    assert compute_key(500, 'tokenA') != compute_key(500, 'tokenB')
    assert compute_key(500, 'tokenA') != compute_key(501, 'tokenA')


def test_verify_accepts_valid_signature():
    token = generate_session_token()
    verify_submission(1234, token, compute_key(1234, token))


def test_verify_accepts_uppercase_hex():
    token = 'abc'
    verify_submission(1234, token, compute_key(1234, token).upper())


def test_verify_rejects_bad_signature():
    with pytest.raises(SignatureMismatch):
        verify_submission(1234, 'tokenA', compute_key(1234, 'tokenB'))
    with pytest.raises(SignatureMismatch):
        verify_submission(1234, 'tokenA', '')
    with pytest.raises(SignatureMismatch):
        verify_submission(1234, 'tokenA', 'clé-non-ascii')


def test_sentinel_rejected_even_when_signed():
    token = 'tokenA'
    with pytest.raises(SentinelChrono):
        verify_submission(SENTINEL_CHRONO, token, compute_key(SENTINEL_CHRONO, token))


@pytest.mark.parametrize('chrono', [0, -5])
def test_non_positive_chrono_counts_as_unset(chrono):
    with pytest.raises(SentinelChrono):
        verify_submission(chrono, 't', compute_key(chrono, 't'))


def test_custom_sentinel():
    with pytest.raises(SentinelChrono):
        verify_submission(999, 't', compute_key(999, 't'), sentinel=999)


@pytest.mark.parametrize('pseudo', [None, '', '   ', 'abc', 'ab,cd', 'line\nbreak', 42])
def test_invalid_pseudos(pseudo):
    with pytest.raises(InvalidInput):
        validate_pseudo(pseudo)


def test_valid_pseudo_is_stripped():
    assert validate_pseudo('  Zorro  ') == 'Zorro'


def test_pseudo_min_length_is_configurable():
    assert validate_pseudo('ab', min_length=2) == 'ab'
