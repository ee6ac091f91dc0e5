"""Full pipeline runs against the in-process sandbox service."""

from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from candidate_pipeline.core.errors import InvalidTransitionError  # noqa: E402
from candidate_pipeline.pipeline import (  # noqa: E402
    FinalSelectsCurator,
    IntakeSequencer,
    IntakeState,
    MonitorState,
    ProcessingMonitor,
    ResultsReview,
    ShortlistSubmitter,
    Stage,
)
from candidate_pipeline.pipeline.shortlist import ShortlistForm  # noqa: E402
from conftest import CORPUS  # noqa: E402

pytestmark = pytest.mark.anyio


async def test_shortlist_to_final_selects(services, store, fast_settings, jd_pdf):
    submitter = ShortlistSubmitter(services.matching, config=fast_settings)
    submitter.form = ShortlistForm(
        search_name="Platform hiring",
        job_role="Platform Engineer",
        skills="Python, Kubernetes",
        raw_data=CORPUS,
        num_candidates=3,
        jd_file=jd_pdf,
    )
    created = await submitter.submit()
    assert created.navigate.stage == Stage.PROCESSING
    search_id = created.navigate.search_id

    first_pass = await ProcessingMonitor(
        services.matching, search_id, next_stage=Stage.INTAKE, config=fast_settings
    ).run()
    assert first_pass.state == MonitorState.SUCCEEDED
    assert first_pass.navigate.stage == Stage.INTAKE

    intake = IntakeSequencer(services.matching, services.questions, search_id, config=fast_settings)
    await intake.load()
    assert intake.progress.shortlisted_indices == (0, 4, 1)
    intake.update_shared(hiring_company="Acme", company_location="Remote", remote_work=True)
    seen = []
    while intake.state != IntakeState.COMPLETE:
        seen.append(intake.progress.current_index)
        intake.set_resume_text(f"Resume for candidate {intake.progress.current_index}")
        if intake.is_last:
            await intake.generate_suggestions()
            intake.choose_suggestion(0)
        outcome = await intake.submit()
        assert outcome.errors == []
    assert seen == [0, 4, 1]
    assert outcome.navigate.stage == Stage.PROCESSING

    second_pass = await ProcessingMonitor(
        services.matching, search_id, next_stage=Stage.RESULTS, config=fast_settings
    ).run()
    assert second_pass.navigate.stage == Stage.RESULTS

    review = ResultsReview(
        services.matching, services.calling, services.questions, search_id, config=fast_settings
    )
    assert await review.load()
    assert [c.name for c in review.visible()] == ["Asha Rao", "Eli Park", "Ben Ortiz"]
    assert [c.match_score for c in review.visible()] == [100.0, 100.0, 50.0]
    assert review.company == "Acme"
    assert review.custom_question == "What is your hands-on experience with Python?"

    review.set_filter("high-match")
    review.select_all()
    assert await review.add_selected_to_final()

    curator = FinalSelectsCurator(services.matching, config=fast_settings)
    await curator.load()
    assert sorted(s.candidate.name for s in curator.visible()) == ["Asha Rao", "Eli Park"]


async def test_high_match_selection_scope(services, search_id, seed_candidates, fast_settings):
    scores = [97, 95, 91, 90, 89, 80, 72, 60, 45, 30]
    ids = seed_candidates(*[(f"Person {n}", score) for n, score in enumerate(scores)])
    review = ResultsReview(
        services.matching, services.calling, services.questions, search_id, config=fast_settings
    )
    await review.load()

    review.set_filter("high-match")
    review.select_all()
    assert review.selected_ids() == ids[:4]

    review.set_filter("all")
    assert review.selected_ids() == []
    assert len(review.visible()) == 10


async def test_custom_question_save_and_reopen(services, search_id, fast_settings):
    review = ResultsReview(
        services.matching, services.calling, services.questions, search_id, config=fast_settings
    )
    await review.load()
    editor = review.question_editor

    assert await editor.open() == ""
    options = await editor.generate()
    assert options
    editor.set_draft("Describe your Kubernetes experience")
    assert await editor.save()
    assert not editor.is_open
    assert review.notices.latest().text == "Custom question saved."

    assert await editor.open() == "Describe your Kubernetes experience"
    assert editor.draft == "Describe your Kubernetes experience"

    assert editor.options == []
    with pytest.raises(InvalidTransitionError):
        editor.pick(0)
    options = await editor.generate()
    editor.pick(0)
    assert await editor.save()
    assert await editor.open() == options[0]

    editor.set_draft("   ")
    assert not await editor.save()
    assert editor.is_open
    assert review.custom_question == options[0]
