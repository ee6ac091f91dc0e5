"""Tests for domain models and the wire normalizers."""

from pathlib import Path
import sys

import pytest
from pydantic import ValidationError

sys.path.append(str(Path(__file__).resolve().parents[1]))
from candidate_pipeline.domain import models, schemas  # noqa: E402


@pytest.mark.parametrize(
    "raw, expected",
    [
        ([3, 1, 4], [3, 1, 4]),
        ("[3, 1, 4]", [3, 1, 4]),
        ('"[3, 1, 4]"', [3, 1, 4]),
        ("", []),
        (None, []),
        (["2", 5.0], [2, 5]),
    ],
)
def test_shortlisted_indices_are_normalized(raw, expected):
    assert schemas.parse_shortlisted_indices(raw) == expected


@pytest.mark.parametrize("raw", ["not json", '{"a": 1}', [True, 2], 7])
def test_shortlisted_indices_reject_bad_shapes(raw):
    with pytest.raises(ValueError):
        schemas.parse_shortlisted_indices(raw)


def test_intake_progress_accepts_string_encoded_indices():
    out = schemas.IntakeProgressOut.model_validate(
        {
            "submitted": 1,
            "target": 3,
            "currentIndex": 1,
            "isLast": False,
            "shortlisted_indices": "[3, 1, 4]",
            "right_fields": {"hiringCompany": "Acme"},
        }
    )
    progress = out.to_domain()
    assert progress.shortlisted_indices == (3, 1, 4)
    assert progress.target == len(progress.shortlisted_indices)
    assert progress.current_index == 1
    assert not progress.done


def test_intake_progress_rejects_inconsistent_cursor():
    with pytest.raises(ValueError):
        models.IntakeProgress(1, 2, None, False, (4,))
    with pytest.raises(ValueError):
        models.IntakeProgress(3, 2, None, False, (4, 5))
    with pytest.raises(ValueError):
        models.IntakeProgress(0, 2, 4, False, (4, 4))
    assert models.IntakeProgress(2, 2, None, False, (4, 5)).done


def test_call_transcript_from_json_string():
    call = schemas.CallOut.model_validate(
        {
            "id": 1,
            "candidate_id": 9,
            "status": "completed",
            "call_duration": 754,
            "transcript": '[{"role": "assistant", "content": "Hi"}, {"speaker": "user", "message": "Hello", "timestamp": "00:02"}]',
            "structured_call_data": None,
            "call_summary": "Keen",
        }
    ).to_domain()
    assert call.duration == 754
    assert call.summary == "Keen"
    assert call.structured_data == {}
    assert call.transcript == (
        models.TranscriptTurn("assistant", "Hi", ""),
        models.TranscriptTurn("user", "Hello", "00:02"),
    )


def test_plain_text_transcript_becomes_one_turn():
    assert schemas.parse_transcript("free text") == [
        {"speaker": "", "message": "free text", "timestamp": ""}
    ]


def test_candidate_out_fills_loose_fields():
    candidate = schemas.CandidateOut.model_validate(
        {
            "id": 5,
            "search_id": 2,
            "name": "Carol",
            "phone": 5550100.0,
            "match_score": None,
            "call_status": None,
            "liked": None,
            "unknown": "ignored",
        }
    ).to_domain()
    assert candidate.phone == "5550100"
    assert candidate.match_score == 0.0
    assert candidate.call_status == models.CallStatus.NOT_CALLED.value
    assert candidate.liked is False


def test_search_out_maps_wire_names():
    search = schemas.SearchOut.model_validate(
        {
            "id": 7,
            "rc_name": "Q3 backend",
            "hc_name": "Acme",
            "remote_work": None,
            "noc": None,
            "shortlisted_index": '"[0, 2]"',
        }
    ).to_domain()
    assert search.name == "Q3 backend"
    assert search.hiring_company == "Acme"
    assert search.remote_work is None
    assert search.noc == 0
    assert search.shortlisted_indices == (0, 2)


def test_final_select_mirrors_join_status():
    candidate = models.Candidate(id=3, search_id=1, name="Dee", join_status=True)
    select = models.FinalSelect.from_candidate(candidate)
    assert select.id == 3
    assert select.joined is True


def test_candidate_in_validates_email_and_score():
    with pytest.raises(ValidationError):
        schemas.CandidateIn(name="Carol", email="nope", phone="1")
    with pytest.raises(ValidationError):
        schemas.CandidateIn(name="Carol", email="carol@acme.io", phone="1", match_score=101)


def test_custom_question_must_not_be_blank():
    with pytest.raises(ValidationError):
        schemas.CustomQuestionIn(search_id=1, question="   ")
    assert schemas.CustomQuestionIn(search_id=1, question=" Why? ").question == "Why?"
