"""Tests for the candidate intake sequencer."""

import asyncio
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from candidate_pipeline.client.services import UploadFile  # noqa: E402
from candidate_pipeline.core.errors import (  # noqa: E402
    FieldValidationError,
    FieldsLockedError,
    InvalidTransitionError,
    TransportError,
)
from candidate_pipeline.domain.schemas import IntakeProgressOut, IntakeSubmitOut  # noqa: E402
from candidate_pipeline.pipeline.intake import IntakeSequencer, IntakeState  # noqa: E402
from candidate_pipeline.pipeline.navigation import Navigate, Stage  # noqa: E402

pytestmark = pytest.mark.anyio


def sequencer(services, search_id, fast_settings) -> IntakeSequencer:
    return IntakeSequencer(services.matching, services.questions, search_id, config=fast_settings)


async def submit_next(seq: IntakeSequencer, resume: str = "Worked on platform tooling."):
    seq.set_resume_text(resume)
    return await seq.submit()


async def test_load_reports_the_server_cursor(services, search_id, fast_settings):
    seq = sequencer(services, search_id, fast_settings)

    progress = await seq.load()

    assert progress.shortlisted_indices == (0, 4, 1)
    assert progress.target == 3
    assert progress.submitted == 0
    assert progress.current_index == 0
    assert seq.state == IntakeState.AWAITING_SUBMISSION
    assert not seq.shared_locked
    assert not seq.is_last


async def test_local_validation_blocks_submission(services, search_id, store, fast_settings):
    seq = sequencer(services, search_id, fast_settings)
    await seq.load()
    seq.update_shared(notice_period="soon")

    outcome = await seq.submit()

    assert outcome.errors == [
        "Paste the resume text or upload a CSV file.",
        "Hiring company is required.",
        "Notice period must be a whole number of days.",
    ]
    assert seq.state == IntakeState.AWAITING_SUBMISSION
    assert store.intake_progress(search_id)["submitted"] == 0


async def test_submit_advances_and_locks_shared_fields(services, search_id, fast_settings):
    seq = sequencer(services, search_id, fast_settings)
    await seq.load()
    seq.update_shared(hiring_company="Acme", notice_period="30", remote_work=True)

    outcome = await submit_next(seq)

    assert outcome.state == IntakeState.AWAITING_SUBMISSION
    assert seq.progress.submitted == 1
    assert seq.progress.current_index == 4
    assert seq.shared_locked
    assert seq.shared.hiring_company == "Acme"
    assert seq.shared.remote_work is True
    assert seq.candidate.resume_text == ""
    assert (IntakeState.SUBMITTING, IntakeState.ADVANCED) in seq.transitions
    with pytest.raises(FieldsLockedError):
        seq.update_shared(hiring_company="Other")


async def test_custom_question_only_for_the_last_candidate(services, search_id, fast_settings):
    seq = sequencer(services, search_id, fast_settings)
    await seq.load()

    assert not seq.can_generate_suggestions
    assert await seq.generate_suggestions() == []
    with pytest.raises(InvalidTransitionError):
        seq.set_custom_question("Why us?")

    seq.update_shared(hiring_company="Acme")
    await submit_next(seq)
    await submit_next(seq)

    assert seq.is_last
    assert seq.state == IntakeState.FINAL_QUESTION
    suggestions = await seq.generate_suggestions()
    assert len(suggestions) == 5
    assert suggestions[0] == "What is your hands-on experience with Python?"
    assert not seq.can_generate_suggestions
    assert await seq.generate_suggestions() == suggestions
    assert seq.choose_suggestion(1) == suggestions[1]
    assert seq.candidate.custom_question == suggestions[1]


async def test_last_submission_completes_and_saves_question(
    services, search_id, store, fast_settings
):
    seq = sequencer(services, search_id, fast_settings)
    await seq.load()
    seq.update_shared(hiring_company="Acme")
    await submit_next(seq)
    await submit_next(seq)
    seq.set_custom_question("Describe your Kubernetes experience")

    outcome = await submit_next(seq)

    assert outcome.state == IntakeState.COMPLETE
    assert outcome.navigate == Navigate(Stage.PROCESSING, search_id)
    assert seq.progress.submitted == seq.progress.target == 3
    assert seq.controls_disabled
    assert store.custom_question(search_id)["custom_question"] == "Describe your Kubernetes experience"
    assert store.results(search_id)["total"] == 3
    with pytest.raises(InvalidTransitionError):
        await seq.submit()


async def test_resumed_intake_prefills_and_locks(services, search_id, store, fast_settings):
    store.submit_intake(
        search_id,
        {"resumeText": "cv", "hiringCompany": "Acme", "remoteWork": "true", "noticePeriod": "15"},
    )
    seq = sequencer(services, search_id, fast_settings)

    await seq.load()

    assert seq.progress.submitted == 1
    assert seq.progress.current_index == 4
    assert seq.shared_locked
    assert seq.shared.hiring_company == "Acme"
    assert seq.shared.remote_work is True
    assert seq.shared.notice_period == "15"
    assert seq.prev_fields["candidateIndex"] == 0


async def test_loading_a_finished_intake_goes_to_processing(services, search_id, store, fast_settings):
    for _ in range(3):
        store.submit_intake(search_id, {"resumeText": "cv", "hiringCompany": "Acme"})
    seq = sequencer(services, search_id, fast_settings)

    await seq.load()

    assert seq.state == IntakeState.COMPLETE
    assert seq.navigate == Navigate(Stage.PROCESSING, search_id)


async def test_stale_page_keeps_its_cursor_on_rejection(services, search_id, fast_settings):
    first = sequencer(services, search_id, fast_settings)
    second = sequencer(services, search_id, fast_settings)
    await first.load()
    await second.load()
    for seq in (first, second):
        seq.update_shared(hiring_company="Acme")

    await submit_next(first)
    outcome = await submit_next(second)

    assert outcome.errors == ["Expected candidate 4, got 0."]
    assert second.state == IntakeState.AWAITING_SUBMISSION
    assert second.progress.submitted == 0
    assert second.progress.current_index == 0
    assert second.candidate.resume_text == "Worked on platform tooling."
    assert second.notices.errors() == ["Expected candidate 4, got 0."]


async def test_unknown_search_is_fatal(services, fast_settings):
    seq = sequencer(services, 999, fast_settings)

    assert await seq.load() is None

    assert seq.state == IntakeState.FAILED
    assert seq.fatal_error == "Search 999 not found."
    assert seq.controls_disabled
    with pytest.raises(InvalidTransitionError):
        seq.set_resume_text("cv")


async def test_csv_upload_counts_as_candidate_data(services, search_id, store, fast_settings):
    seq = sequencer(services, search_id, fast_settings)
    await seq.load()
    seq.update_shared(hiring_company="Acme")

    with pytest.raises(FieldValidationError):
        seq.attach_csv(UploadFile("notes.txt", b"hello", "text/plain"))
    seq.attach_csv(UploadFile("asha.csv", b"name,years\nAsha,6\n", "text/csv"))
    outcome = await seq.submit()

    assert outcome.errors == []
    [candidate] = store.results(search_id)["candidates"]
    assert candidate["name"] == "Asha Rao"
    assert candidate["summary"] == "name,years\nAsha,6"


async def test_clear_keeps_locked_shared_fields(services, search_id, fast_settings):
    seq = sequencer(services, search_id, fast_settings)
    await seq.load()
    seq.update_shared(hiring_company="Acme")
    await submit_next(seq)
    seq.set_resume_text("draft")

    seq.clear()

    assert seq.candidate.resume_text == ""
    assert seq.shared.hiring_company == "Acme"


class StubMatching:
    def __init__(self, *progress):
        self.progress = list(progress)
        self.gate = asyncio.Event()
        self.submissions = 0

    async def intake_progress(self, search_id):
        return self.progress.pop(0)

    async def submit_intake(self, search_id, fields, csv_file=None):
        self.submissions += 1
        await self.gate.wait()
        return IntakeSubmitOut(next=True, submitted=1, candidateIndex=6, isLast=True)


def progress_out(company: str, submitted: int = 0) -> IntakeProgressOut:
    return IntakeProgressOut(
        submitted=submitted,
        target=2,
        currentIndex=5 if submitted == 0 else 6,
        isLast=submitted == 1,
        shortlisted_indices=[5, 6],
        right_fields={"hiringCompany": company},
    )


async def test_prefill_runs_once_per_instance(fast_settings):
    matching = StubMatching(progress_out("Acme"), progress_out("Globex"))
    seq = IntakeSequencer(matching, None, 1, config=fast_settings)

    await seq.load()
    await seq.load()

    assert seq.shared.hiring_company == "Acme"


async def test_concurrent_submit_is_rejected(fast_settings):
    matching = StubMatching(progress_out("Acme"))
    seq = IntakeSequencer(matching, None, 1, config=fast_settings)
    await seq.load()
    seq.set_resume_text("cv")

    pending = asyncio.ensure_future(seq.submit())
    await asyncio.sleep(0)
    assert seq.state == IntakeState.SUBMITTING
    assert seq.controls_disabled
    with pytest.raises(InvalidTransitionError):
        await seq.submit()

    matching.gate.set()
    outcome = await pending

    assert matching.submissions == 1
    assert outcome.state == IntakeState.FINAL_QUESTION
    assert seq.progress.current_index == 6


class SlowQuestions:
    def __init__(self, fail_first=False):
        self.calls = 0
        self.fail_first = fail_first

    async def suggestions(self, search_id):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.fail_first and self.calls == 1:
            raise TransportError()
        return ["Why this team?", "What did you ship last?"]


async def test_overlapping_suggestion_requests_fetch_once(fast_settings):
    questions = SlowQuestions()
    seq = IntakeSequencer(StubMatching(progress_out("Acme", submitted=1)), questions, 1, config=fast_settings)
    await seq.load()
    assert seq.state == IntakeState.FINAL_QUESTION

    first, second = await asyncio.gather(seq.generate_suggestions(), seq.generate_suggestions())

    assert questions.calls == 1
    assert first == ["Why this team?", "What did you ship last?"]
    assert second == []
    assert seq.suggestions == first
    assert not seq.can_generate_suggestions


async def test_failed_suggestions_can_be_retried(fast_settings):
    questions = SlowQuestions(fail_first=True)
    seq = IntakeSequencer(StubMatching(progress_out("Acme", submitted=1)), questions, 1, config=fast_settings)
    await seq.load()

    assert await seq.generate_suggestions() == []
    assert seq.can_generate_suggestions
    assert len(await seq.generate_suggestions()) == 2
    assert questions.calls == 2


async def test_choosing_a_missing_suggestion_is_rejected(fast_settings):
    seq = IntakeSequencer(StubMatching(progress_out("Acme", submitted=1)), SlowQuestions(), 1, config=fast_settings)
    await seq.load()

    with pytest.raises(InvalidTransitionError):
        seq.choose_suggestion(0)
