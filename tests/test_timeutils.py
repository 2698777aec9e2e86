from datetime import datetime, timezone

from mutual_availability.shared.crypto import decrypt_token, encrypt_token
from mutual_availability.shared.timeutils import parse_provider_timestamp, to_reference_time, to_utc


def test_parse_provider_timestamps():
    assert parse_provider_timestamp("2024-01-01T12:00:00Z") == datetime(2024, 1, 1, 12)
    assert parse_provider_timestamp("2024-01-01T12:00:00-05:00") == datetime(2024, 1, 1, 17)
    assert parse_provider_timestamp("2024-01-01T12:00:00.1234567+00:00") == datetime(2024, 1, 1, 12, 0, 0, 123456)


def test_reference_conversions():
    naive = datetime(2024, 1, 1, 9)
    assert to_reference_time(naive) is naive
    assert to_utc(naive) == datetime(2024, 1, 1, 9, tzinfo=timezone.utc)


def test_token_encryption():
    encrypted = encrypt_token("secret-access-token")
    assert encrypted != "secret-access-token"
    assert decrypt_token(encrypted) == "secret-access-token"
    assert decrypt_token(encrypt_token("x", secret_key="other"), secret_key="other") == "x"
