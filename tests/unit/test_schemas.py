from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace
from urllib.parse import unquote

import pytest
from pydantic import ValidationError

from backend.app.images.synthetic import MOOD_GRADIENTS, synthetic_data_uri
from backend.app.schemas.entries import EntryCreate, EntryModel, EntryUpdate, Mood
from backend.app.utils.tags import decode_tags, normalize_tags


def test_entry_create_normalises_input() -> None:
    entry = EntryCreate.model_validate(
        {
            "date": "2024-07-08",
            "mood": "calm",
            "city": "   ",
            "tags": [" Walk ", "WALK", "Coffee  Shop", ""],
            "note": "  ",
            "weather": {"tempC": 21.5, "humidity": 40, "condition": "sunny"},
        }
    )

    assert entry.date == date(2024, 7, 8)
    assert entry.mood is Mood.CALM
    assert entry.city is None
    assert entry.note is None
    assert entry.tags == ["walk", "coffee shop"]
    assert entry.weather is not None
    assert entry.weather.temp_c == 21.5


@pytest.mark.parametrize(
    "payload",
    [
        {"date": "2024-07-08", "mood": "ecstatic"},
        {"date": "2024-02-30", "mood": "calm"},
        {"mood": "calm"},
        {"date": "2024-07-08", "mood": "calm", "weather": {"humidity": 140}},
        {"date": "2024-07-08", "mood": "calm", "note": "x" * 2001},
    ],
)
def test_entry_create_rejects_invalid_payloads(payload: dict) -> None:
    with pytest.raises(ValidationError):
        EntryCreate.model_validate(payload)


def test_entry_update_only_reports_sent_fields() -> None:
    update = EntryUpdate.model_validate({"mood": "sad", "tags": "Work, news", "note": ""})

    assert update.to_changes() == {"mood": "sad", "tags": ["work", "news"], "note": None}


def test_entry_update_weather_and_date() -> None:
    update = EntryUpdate.model_validate({"date": "2024-07-09", "weather": None})

    assert update.to_changes() == {
        "day": date(2024, 7, 9),
        "weather_temp_c": None,
        "weather_humidity": None,
        "weather_condition": None,
    }
    assert EntryUpdate().to_changes() == {}


def test_entry_model_from_storage_row() -> None:
    stamp = datetime(2024, 7, 8, 9, 30)
    row = SimpleNamespace(
        id=3,
        day=date(2024, 7, 8),
        mood="happy",
        city="Toronto",
        tags='["walk"]',
        note=None,
        weather_temp_c=None,
        weather_humidity=None,
        weather_condition=None,
        created_at=stamp,
        updated_at=stamp,
    )

    model = EntryModel.from_entry(row)  # type: ignore[arg-type]
    body = model.model_dump(mode="json", by_alias=True)

    assert body["date"] == "2024-07-08"
    assert body["tags"] == ["walk"]
    assert body["weather"] is None

    row.weather_condition = "rain"
    with_weather = EntryModel.from_entry(row).model_dump(by_alias=True)  # type: ignore[arg-type]
    assert with_weather["weather"] == {"tempC": None, "humidity": None, "condition": "rain"}


def test_tag_helpers() -> None:
    assert normalize_tags(None) == []
    assert normalize_tags("a, B ,a") == ["a", "b"]
    assert decode_tags('["X", "x", "y"]') == ["x", "y"]
    assert decode_tags('{"not": "a list"}') == []
    assert decode_tags("legacy, tags") == ["legacy", "tags"]
    assert decode_tags(None) == []


def test_synthetic_uri_uses_mood_gradient() -> None:
    uri = synthetic_data_uri(800, 450, "Happy")
    svg = unquote(uri.split(",", 1)[1])

    assert uri.startswith("data:image/svg+xml;charset=utf-8,")
    assert 'width="800"' in svg
    assert MOOD_GRADIENTS["happy"][0] in svg

    fallback = unquote(synthetic_data_uri(10, 10, "unknown").split(",", 1)[1])
    assert MOOD_GRADIENTS["neutral"][0] in fallback
