"""
tests/test_window_tracker.py

Unit tests for alerting/services/window_tracker.py.
Reading sources and the alert store are replaced with in-memory fakes.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from alerting.schemas import AlertKind
from alerting.services.encryption import EncryptionError
from alerting.services.window_tracker import PersistentWindowTracker
from tests.fixtures import (
    TEST_NOW,
    TEST_USER_ID,
    FakeReadingSource,
    build_alert,
    build_alert_store,
    build_cipher,
    build_encrypted_reading,
    build_sample,
    build_settings,
)


def _settings(**overrides):
    values = {
        "persistent_hyperglycemia_threshold": 250,
        "persistent_hyperglycemia_min_readings": 2,
        "persistent_hyperglycemia_window_hours": 4,
    }
    values.update(overrides)
    return build_settings(**values)


def test_tracker_requires_a_source() -> None:
    with pytest.raises(ValueError):
        PersistentWindowTracker([], build_alert_store(), build_cipher())


@pytest.mark.asyncio
async def test_one_prior_reading_plus_current_fires() -> None:
    entries = FakeReadingSource("glucose_entries", [build_encrypted_reading(260)])
    sensor = FakeReadingSource("glucose_readings")
    store = build_alert_store(existing=None)
    tracker = PersistentWindowTracker([entries, sensor], store, build_cipher())

    result = await tracker.resolve_persistent(TEST_USER_ID, 280, _settings(), TEST_NOW)

    assert result.fire is True
    assert result.fallback_to_regular_hyper is False
    store.find_latest.assert_awaited_once_with(
        TEST_USER_ID,
        AlertKind.PERSISTENT_HYPERGLYCEMIA,
        TEST_NOW - timedelta(hours=4),
    )


@pytest.mark.asyncio
async def test_both_sources_queried_from_window_start() -> None:
    entries = FakeReadingSource("glucose_entries")
    sensor = FakeReadingSource("glucose_readings")
    tracker = PersistentWindowTracker(
        [entries, sensor], build_alert_store(), build_cipher()
    )

    await tracker.resolve_persistent(
        TEST_USER_ID, 280, _settings(persistent_hyperglycemia_window_hours=6), TEST_NOW
    )

    window_start = TEST_NOW - timedelta(hours=6)
    entries.fetch_since.assert_awaited_once_with(TEST_USER_ID, window_start)
    sensor.fetch_since.assert_awaited_once_with(TEST_USER_ID, window_start)


@pytest.mark.asyncio
async def test_readings_from_both_sources_are_counted() -> None:
    cipher = build_cipher()
    entries = FakeReadingSource(
        "glucose_entries", [build_encrypted_reading(270, 90, cipher=cipher)]
    )
    sensor = FakeReadingSource(
        "glucose_readings",
        [build_encrypted_reading(265, 30, source="glucose_readings", cipher=cipher)],
    )
    tracker = PersistentWindowTracker([entries, sensor], build_alert_store(), cipher)

    result = await tracker.resolve_persistent(
        TEST_USER_ID, 280, _settings(persistent_hyperglycemia_min_readings=3), TEST_NOW
    )

    assert result.fire is True


@pytest.mark.asyncio
async def test_too_few_readings_falls_back() -> None:
    entries = FakeReadingSource("glucose_entries", [build_encrypted_reading(260)])
    store = build_alert_store()
    tracker = PersistentWindowTracker([entries], store, build_cipher())

    result = await tracker.resolve_persistent(
        TEST_USER_ID, 280, _settings(persistent_hyperglycemia_min_readings=3), TEST_NOW
    )

    assert result.fire is False
    assert result.fallback_to_regular_hyper is True
    store.find_latest.assert_not_awaited()


@pytest.mark.asyncio
async def test_readings_at_threshold_do_not_qualify() -> None:
    entries = FakeReadingSource(
        "glucose_entries",
        [build_encrypted_reading(250), build_encrypted_reading(180, 60)],
    )
    tracker = PersistentWindowTracker([entries], build_alert_store(), build_cipher())

    result = await tracker.resolve_persistent(TEST_USER_ID, 280, _settings(), TEST_NOW)

    assert result.fire is False


@pytest.mark.asyncio
async def test_existing_persistent_alert_in_window_suppresses() -> None:
    existing = build_alert(
        kind=AlertKind.PERSISTENT_HYPERGLYCEMIA,
        created_at=TEST_NOW - timedelta(hours=1),
    )
    entries = FakeReadingSource("glucose_entries", [build_encrypted_reading(260)])
    tracker = PersistentWindowTracker(
        [entries], build_alert_store(existing=existing), build_cipher()
    )

    result = await tracker.resolve_persistent(TEST_USER_ID, 280, _settings(), TEST_NOW)

    assert result.fire is False
    assert result.fallback_to_regular_hyper is True


@pytest.mark.asyncio
async def test_undecryptable_reading_is_skipped_not_fatal() -> None:
    cipher = build_cipher()
    corrupt = build_encrypted_reading(300, reading_id="corrupt", cipher=cipher)
    corrupt = corrupt.model_copy(update={"ciphertext": "deadbeef"})
    entries = FakeReadingSource(
        "glucose_entries",
        [corrupt, build_encrypted_reading(260, 45, reading_id="good", cipher=cipher)],
    )
    tracker = PersistentWindowTracker([entries], build_alert_store(), cipher)

    readings = await tracker.collect_readings(TEST_USER_ID, TEST_NOW - timedelta(hours=4))

    assert [reading.value for reading in readings] == [260.0]


@pytest.mark.asyncio
async def test_failed_decryption_does_not_count_toward_minimum() -> None:
    decryptor = MagicMock()
    decryptor.decrypt_glucose.side_effect = EncryptionError("tampered")
    entries = FakeReadingSource("glucose_entries", [build_encrypted_reading(300)])
    tracker = PersistentWindowTracker([entries], build_alert_store(), decryptor)

    result = await tracker.resolve_persistent(TEST_USER_ID, 280, _settings(), TEST_NOW)

    assert result.fire is False
    assert result.fallback_to_regular_hyper is True


@pytest.mark.asyncio
async def test_collected_readings_are_time_ordered() -> None:
    cipher = build_cipher()
    entries = FakeReadingSource(
        "glucose_entries", [build_encrypted_reading(200, 10, cipher=cipher)]
    )
    sensor = FakeReadingSource(
        "glucose_readings",
        [
            build_encrypted_reading(210, 120, cipher=cipher),
            build_encrypted_reading(220, 60, cipher=cipher),
        ],
    )
    tracker = PersistentWindowTracker([entries, sensor], build_alert_store(), cipher)

    readings = await tracker.collect_readings(TEST_USER_ID, TEST_NOW - timedelta(hours=4))

    assert [reading.value for reading in readings] == [210.0, 220.0, 200.0]


@pytest.mark.asyncio
async def test_current_sample_row_is_not_counted_twice() -> None:
    entries = FakeReadingSource(
        "glucose_entries",
        [build_encrypted_reading(280, minutes_ago=0, reading_id="entry_cur")],
    )
    store = build_alert_store()
    tracker = PersistentWindowTracker([entries], store, build_cipher())

    result = await tracker.resolve_persistent(
        TEST_USER_ID,
        280,
        _settings(),
        TEST_NOW,
        exclude={("glucose_entries", "entry_cur")},
    )

    assert result.fire is False
    assert result.fallback_to_regular_hyper is True
    store.find_latest.assert_not_awaited()


@pytest.mark.asyncio
async def test_exclusion_matches_source_and_id_together() -> None:
    cipher = build_cipher()
    entries = FakeReadingSource(
        "glucose_entries",
        [build_encrypted_reading(280, 0, reading_id="shared_id", cipher=cipher)],
    )
    sensor = FakeReadingSource(
        "glucose_readings",
        [
            build_encrypted_reading(
                270, 20, source="glucose_readings", reading_id="shared_id", cipher=cipher
            )
        ],
    )
    tracker = PersistentWindowTracker([entries, sensor], build_alert_store(), cipher)

    readings = await tracker.collect_readings(
        TEST_USER_ID,
        TEST_NOW - timedelta(hours=4),
        exclude={("glucose_entries", "shared_id")},
    )

    assert [reading.value for reading in readings] == [270.0]


def test_sample_source_refs_name_both_sources() -> None:
    sample = build_sample(
        280, glucose_reading_id="reading_cur", glucose_entry_id="entry_cur"
    )

    assert sample.source_refs() == {
        ("glucose_entries", "entry_cur"),
        ("glucose_readings", "reading_cur"),
    }
    assert build_sample(280).source_refs() == frozenset()
