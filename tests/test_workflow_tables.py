from __future__ import annotations

import itertools
import unittest

from hireflow.core.workflow import (
    ALL_TABLES,
    APPLICATION_TABLE,
    APPROVAL_TABLE,
    EDITABLE_JOB_STATES,
    INTERVIEW_TABLE,
    JOB_TABLE,
    MOVE_STAGE_TARGETS,
    OFFER_TABLE,
    PRE_OFFER_STATES,
    SCORECARD_TABLE,
    ApplicationEvent,
    ApplicationStatus,
    ApprovalEvent,
    ApprovalStatus,
    InterviewEvent,
    InterviewStatus,
    JobEvent,
    JobStatus,
    OfferEvent,
    OfferStatus,
    ScorecardEvent,
    ScorecardState,
    can_move_stage,
)


class TransitionTableShapeTests(unittest.TestCase):
    def test_edges_only_reference_known_states(self) -> None:
        for table in ALL_TABLES:
            for (source, _event), target in table.edges.items():
                self.assertIsInstance(source, table.states, table.entity)
                self.assertIsInstance(target, table.states, table.entity)

    def test_terminal_states_have_no_outgoing_edges(self) -> None:
        for table in ALL_TABLES:
            for state in table.terminal:
                outgoing = [event for (source, event) in table.edges if source == state]
                self.assertEqual(outgoing, [], f"{table.entity}:{state}")

    def test_unlisted_pairs_are_rejected(self) -> None:
        for table in ALL_TABLES:
            for state, event in itertools.product(table.states, table.events()):
                expected = table.edges.get((state, event))
                self.assertEqual(table.target(state, event), expected)
                self.assertEqual(table.can_fire(state, event), expected is not None)

    def test_unknown_stored_state_never_fires(self) -> None:
        self.assertIsNone(JOB_TABLE.target("archived", JobEvent.CLOSE))
        self.assertFalse(APPLICATION_TABLE.can_fire("interview_score_submitted", ApplicationEvent.SELECT))
        self.assertIsNone(SCORECARD_TABLE.target(7, ScorecardEvent.FINALIZE))


class JobTableTests(unittest.TestCase):
    def test_submit_from_draft_or_pending(self) -> None:
        self.assertEqual(JOB_TABLE.sources(JobEvent.SUBMIT), frozenset({JobStatus.DRAFT, JobStatus.PENDING}))
        self.assertEqual(JOB_TABLE.target("draft", JobEvent.SUBMIT), JobStatus.PENDING)

    def test_approval_outcomes(self) -> None:
        self.assertEqual(JOB_TABLE.target(JobStatus.PENDING, JobEvent.APPROVE), JobStatus.PUBLISHED)
        self.assertEqual(JOB_TABLE.target(JobStatus.PENDING, JobEvent.REJECT), JobStatus.REJECTED)
        self.assertIsNone(JOB_TABLE.target(JobStatus.DRAFT, JobEvent.APPROVE))

    def test_closed_is_final(self) -> None:
        self.assertTrue(JOB_TABLE.is_terminal("closed"))
        self.assertIsNone(JOB_TABLE.target(JobStatus.CLOSED, JobEvent.CLOSE))
        self.assertEqual(JOB_TABLE.target(JobStatus.REJECTED, JobEvent.CLOSE), JobStatus.CLOSED)

    def test_editable_states_match_submit_sources(self) -> None:
        self.assertEqual(EDITABLE_JOB_STATES, frozenset({JobStatus.DRAFT, JobStatus.PENDING}))


class ApprovalTableTests(unittest.TestCase):
    def test_reset_returns_any_state_to_pending(self) -> None:
        for state in ApprovalStatus:
            self.assertEqual(APPROVAL_TABLE.target(state, ApprovalEvent.RESET), ApprovalStatus.PENDING)

    def test_decisions_only_from_pending(self) -> None:
        self.assertEqual(APPROVAL_TABLE.sources(ApprovalEvent.APPROVE), frozenset({ApprovalStatus.PENDING}))
        self.assertIsNone(APPROVAL_TABLE.target(ApprovalStatus.REJECTED, ApprovalEvent.APPROVE))


class ApplicationTableTests(unittest.TestCase):
    def test_persisted_labels_are_kept_verbatim(self) -> None:
        self.assertEqual(ApplicationStatus.SCORE_SUBMITTED.value, "interview score submited")
        self.assertEqual(ApplicationStatus.OFFER_ACCEPTED.value, "offer accecepted")
        self.assertEqual(APPLICATION_TABLE.coerce("offer accecepted"), ApplicationStatus.OFFER_ACCEPTED)

    def test_happy_path(self) -> None:
        path = [
            (ApplicationEvent.SCREEN_ADVANCE, ApplicationStatus.INTERVIEW),
            (ApplicationEvent.SUBMIT_SCORE, ApplicationStatus.SCORE_SUBMITTED),
            (ApplicationEvent.SELECT, ApplicationStatus.SELECTED),
            (ApplicationEvent.SEND_OFFER, ApplicationStatus.OFFER_LETTER_SENT),
            (ApplicationEvent.ACCEPT_OFFER, ApplicationStatus.OFFER_ACCEPTED),
            (ApplicationEvent.HIRE, ApplicationStatus.HIRED),
        ]
        state = ApplicationStatus.APPLIED
        for event, expected in path:
            state = APPLICATION_TABLE.target(state, event)
            self.assertEqual(state, expected)
        self.assertTrue(APPLICATION_TABLE.is_terminal(state))

    def test_hire_only_after_acceptance(self) -> None:
        self.assertEqual(APPLICATION_TABLE.sources(ApplicationEvent.HIRE), frozenset({ApplicationStatus.OFFER_ACCEPTED}))

    def test_screen_reject_from_applied_or_interview(self) -> None:
        self.assertEqual(
            APPLICATION_TABLE.sources(ApplicationEvent.SCREEN_REJECT),
            frozenset({ApplicationStatus.APPLIED, ApplicationStatus.INTERVIEW}),
        )

    def test_offer_can_be_sent_before_or_after_selection(self) -> None:
        self.assertEqual(PRE_OFFER_STATES, frozenset({ApplicationStatus.SCORE_SUBMITTED, ApplicationStatus.SELECTED}))

    def test_move_stage_never_reaches_hired_or_leaves_terminal(self) -> None:
        self.assertNotIn(ApplicationStatus.HIRED, MOVE_STAGE_TARGETS)
        self.assertFalse(can_move_stage(ApplicationStatus.APPLIED, ApplicationStatus.HIRED))
        self.assertFalse(can_move_stage(ApplicationStatus.REJECTED, ApplicationStatus.APPLIED))
        self.assertFalse(can_move_stage(ApplicationStatus.HIRED, ApplicationStatus.SELECTED))
        self.assertTrue(can_move_stage(ApplicationStatus.APPLIED, ApplicationStatus.SELECTED))
        self.assertTrue(can_move_stage("interview", "rejected"))


class InterviewScorecardOfferTableTests(unittest.TestCase):
    def test_interview_leaves_scheduled_once(self) -> None:
        self.assertEqual(INTERVIEW_TABLE.target("scheduled", InterviewEvent.COMPLETE), InterviewStatus.COMPLETED)
        self.assertEqual(INTERVIEW_TABLE.target("scheduled", InterviewEvent.CANCEL), InterviewStatus.CANCELLED)
        self.assertIsNone(INTERVIEW_TABLE.target("cancelled", InterviewEvent.COMPLETE))

    def test_scorecard_state_is_stored_as_integer(self) -> None:
        self.assertEqual(SCORECARD_TABLE.target(0, ScorecardEvent.FINALIZE), ScorecardState.FINAL)
        self.assertIsNone(SCORECARD_TABLE.target(1, ScorecardEvent.FINALIZE))

    def test_offer_decline_from_sent_or_accepted(self) -> None:
        self.assertEqual(
            OFFER_TABLE.sources(OfferEvent.DECLINE),
            frozenset({OfferStatus.SENT, OfferStatus.ACCEPTED}),
        )
        self.assertIsNone(OFFER_TABLE.target(OfferStatus.DRAFT, OfferEvent.ACCEPT))


if __name__ == "__main__":
    unittest.main()
