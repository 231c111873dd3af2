from __future__ import annotations

import pytest

from backend.app.images import safety


def _photo(**overrides):
    photo = {
        "id": "p1",
        "description": "quiet lake at dawn",
        "alt_description": "lake",
        "likes": 0,
        "width": 800,
        "height": 520,
        "tags": [],
    }
    photo.update(overrides)
    return photo


@pytest.mark.parametrize(
    "overrides",
    [
        {"description": "Bare FEET on the sand"},
        {"alt_description": "a person walking"},
        {"tags": [{"title": "portrait"}]},
        {"tags": ["hands"]},
        {"topic_submissions": {"people": {"status": "approved"}}},
    ],
)
def test_blocked_terms_anywhere_in_metadata(overrides) -> None:
    assert safety.is_blocked(_photo(**overrides))


def test_clean_candidate_is_not_blocked() -> None:
    assert not safety.is_blocked(_photo(tags=[{"title": "mountains"}]))


def test_score_components() -> None:
    photo = _photo(
        likes=250,
        tags=[{"title": "Nature"}, {"title": "travel"}],
        width=1600,
        height=1040,
    )

    # popularity capped at 10, two preferred topics, half-size match on both axes
    assert safety.score(photo, 800, 520) == pytest.approx(10 + 4 + 5 * 0.5)


def test_sponsored_candidates_are_penalised() -> None:
    plain = _photo(likes=20)
    sponsored = _photo(likes=20, sponsored_by={"name": "brand"})

    assert safety.score(plain, 800, 520) - safety.score(sponsored, 800, 520) == pytest.approx(5)


def test_pick_best_skips_blocked_even_when_it_scores_higher() -> None:
    blocked = _photo(id="blocked", description="model posing", likes=1000)
    safe = _photo(id="safe", likes=5)

    assert safety.pick_best([blocked, safe], 800, 520)["id"] == "safe"


def test_pick_best_keeps_provider_order_on_ties() -> None:
    first = _photo(id="first")
    second = _photo(id="second")

    assert safety.pick_best([first, second], 800, 520)["id"] == "first"


def test_pick_best_returns_none_when_everything_is_blocked() -> None:
    assert safety.pick_best([_photo(description="legs")], 800, 520) is None
    assert safety.pick_best([], 800, 520) is None
