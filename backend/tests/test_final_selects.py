"""Tests for the final selects curator."""

import io
from pathlib import Path
import sys

import pandas as pd
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from candidate_pipeline.core.errors import InvalidTransitionError, TransportError  # noqa: E402
from candidate_pipeline.domain.models import Candidate, FinalSelect  # noqa: E402
from candidate_pipeline.pipeline.final_selects import (  # noqa: E402
    FinalSelectsCurator,
    PendingRemoval,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
def finals(store, seed_candidates):
    """Four final selects; only the first has joined."""
    ids = seed_candidates(
        ("Asha Rao", 95), ("Ben Ortiz", 91), ("Chen Li", 60), ("Dana Kim", 93)
    )
    store.mutate_final_selects(add=ids, joined=[{"candidate_id": ids[0], "joined": True}])
    return ids


async def loaded_curator(services, fast_settings) -> FinalSelectsCurator:
    curator = FinalSelectsCurator(services.matching, config=fast_settings)
    assert await curator.load()
    return curator


def visible_ids(curator):
    return [row.id for row in curator.visible()]


async def test_filters(services, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    asha, ben, chen, dana = finals

    assert curator.joined_count == 1
    curator.set_filter("joined")
    assert visible_ids(curator) == [asha]
    curator.set_filter("pending")
    assert sorted(visible_ids(curator)) == sorted([ben, chen, dana])
    curator.set_filter("high-score")
    assert sorted(visible_ids(curator)) == sorted([asha, ben, dana])
    curator.set_search_term("chen")
    assert visible_ids(curator) == []


async def test_toggle_joined_round_trip(services, store, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    ben = finals[1]

    assert await curator.toggle_joined(ben)

    assert curator.table.get(ben).joined is True
    assert curator.joined_count == 2
    assert store.get_candidate(ben)["candidate"]["join_status"] is True
    assert not curator.busy


async def test_bulk_join_uses_visible_selection(services, store, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    curator.set_filter("high-score")
    curator.select_all()

    assert await curator.set_joined_selected(True)

    assert curator.joined_count == 3
    assert store.get_candidate(finals[2])["candidate"]["join_status"] is False
    assert curator.notices.latest().text == "Updated join status for 3 candidates."


class RefusingMatching:
    def __init__(self, rows):
        self.rows = rows

    async def final_selects(self):
        return list(self.rows)

    async def mutate_final_selects(self, **changes):
        raise TransportError()


async def test_toggle_joined_reverts_on_failure(fast_settings):
    row = FinalSelect(Candidate(id=7, search_id=1, name="Asha Rao"), joined=False)
    curator = FinalSelectsCurator(RefusingMatching([row]), config=fast_settings)
    await curator.load()

    assert not await curator.toggle_joined(7)

    assert curator.table.get(7).joined is False
    assert curator.notices.errors() == [TransportError.default_message]
    assert not curator.busy


async def test_removal_only_touches_visible_selection(services, store, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    asha, ben, chen, dana = finals

    curator.set_filter("pending")
    curator.select_all()
    assert await curator.toggle_joined(dana)
    assert sorted(visible_ids(curator)) == sorted([ben, chen])

    pending = curator.request_remove_selected()
    assert pending.count == 2
    assert set(pending.ids) == {ben, chen}
    assert pending.prompt == "Remove 2 candidates from Final Selects?"
    with pytest.raises(InvalidTransitionError):
        curator.request_remove_selected()

    assert await curator.confirm_removal()

    remaining = {c["id"] for c in store.final_selects()["candidates"]}
    assert remaining == {asha, dana}
    assert sorted(row.id for row in curator.table.rows) == sorted([asha, dana])
    assert curator.removal_pending is None


async def test_cancelled_removal_sends_nothing(services, store, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    curator.toggle_selected(finals[0])

    curator.request_remove_selected()
    curator.cancel_removal()

    assert curator.removal_pending is None
    assert len(store.final_selects()["candidates"]) == 4
    with pytest.raises(InvalidTransitionError):
        await curator.confirm_removal()


async def test_removal_needs_a_selection(services, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    assert curator.request_remove_selected() is None
    assert curator.notices.errors() == ["Select at least one candidate."]


def test_removal_prompt_singular():
    assert PendingRemoval((3,)).prompt == "Remove 1 candidate from Final Selects?"


async def test_export_csv(services, finals, fast_settings):
    curator = await loaded_curator(services, fast_settings)
    curator.set_filter("joined")

    frame = pd.read_csv(io.StringIO(curator.export_csv()), dtype=str, keep_default_na=False)

    assert list(frame.columns) == [
        "Name",
        "Email",
        "Phone",
        "Skills",
        "Match Score",
        "Call Status",
        "Joined",
    ]
    assert frame.to_dict("records") == [
        {
            "Name": "Asha Rao",
            "Email": "asha0@acme.io",
            "Phone": "+1 555 0100",
            "Skills": "Python",
            "Match Score": "95",
            "Call Status": "not_called",
            "Joined": "Yes",
        }
    ]


def final(candidate_id, name, score, status):
    return FinalSelect(
        Candidate(id=candidate_id, search_id=1, name=name, match_score=score, call_status=status),
        joined=False,
    )


def shuffled_finals():
    return [
        final(1, "Chen Li", 60, "scheduled"),
        final(2, "Asha Rao", 95, "not_called"),
        final(3, "Dana Kim", 93, "Re-schedule"),
        final(4, "Ben Ortiz", 91, "Called & Answered"),
    ]


async def test_sort_by_match_score_puts_highest_first(fast_settings):
    curator = FinalSelectsCurator(RefusingMatching(shuffled_finals()), config=fast_settings)
    await curator.load()
    assert visible_ids(curator) == [1, 2, 3, 4]

    curator.set_sort("match_score")

    assert visible_ids(curator) == [2, 3, 4, 1]


async def test_sort_by_call_status_is_lexicographic(fast_settings):
    curator = FinalSelectsCurator(RefusingMatching(shuffled_finals()), config=fast_settings)
    await curator.load()

    curator.set_sort("call_status")

    assert [row.candidate.call_status for row in curator.visible()] == [
        "Called & Answered",
        "Re-schedule",
        "not_called",
        "scheduled",
    ]
