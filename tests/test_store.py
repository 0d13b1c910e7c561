"""Tests for the EntityStore.

Covers:
- Reporting periods, section instantiation and section lifecycle
- Data point writes, derived completeness and no-op updates
- Validation rules rejecting writes
- Gap transitions, permission denials and the review workflow
- Evidence, gaps, completion exceptions
- Consistency validation and publication
- Audit log queries, chain verification and reminders
"""

import threading

import pytest

from reportstudio.disclosure_engine.models import (
    ApproveDataPointRequest,
    CreateCompletionExceptionRequest,
    CreateEvidenceRequest,
    CreateGapRequest,
    CreateReportingPeriodRequest,
    CreateValidationRuleRequest,
    FlagMissingDataRequest,
    FlagProvenanceRequest,
    GapResolutionRequest,
    PublishReportRequest,
    ReminderHistory,
    RequestChangesRequest,
    ReviewCompletionExceptionRequest,
    RunValidationRequest,
    TransitionGapStatusRequest,
    UnflagMissingDataRequest,
    UpdateDataPointRequest,
    UpdateDataPointStatusRequest,
    UpdateReportingPeriodRequest,
    UpdateSectionRequest,
    UpdateValidationRuleRequest,
)
from reportstudio.exceptions import DependentEntityError

APPROVED_READ_ONLY = (
    "Cannot modify approved data points. "
    "Only admins can make changes to approved entries."
)


def _update_request(dp, **overrides):
    """Update request that repeats the data point's current fields."""
    fields = {
        "type": dp.type,
        "classification": dp.classification,
        "title": dp.title,
        "content": dp.content,
        "value": dp.value,
        "unit": dp.unit,
        "owner_id": dp.owner_id,
        "contributor_ids": list(dp.contributor_ids),
        "source": dp.source,
        "information_type": dp.information_type,
        "assumptions": dp.assumptions,
        "estimate_type": dp.estimate_type,
        "estimate_method": dp.estimate_method,
        "confidence_level": dp.confidence_level,
        "updated_by": dp.owner_id or "user-2",
    }
    fields.update(overrides)
    return UpdateDataPointRequest(**fields)


def _evidence(store, section, **overrides):
    fields = {
        "section_id": section.id,
        "title": "Fuel invoices 2024",
        "source_url": "https://example.com/invoices.pdf",
        "uploaded_by": "user-3",
    }
    fields.update(overrides)
    result = store.create_evidence(CreateEvidenceRequest(**fields))
    assert result.is_valid, result.error_message
    return result.data


def _transition(store, dp_id, target, user="user-3", **kwargs):
    return store.transition_gap_status(dp_id, TransitionGapStatusRequest(
        transitioned_by=user, target_status=target, **kwargs,
    ))


def _audit_count(store):
    return store.get_statistics()["audit_entries"]


# ==============================================================================
# Users and catalog
# ==============================================================================

class TestDirectory:
    """Seeded users and section catalog."""

    def test_sample_users(self, store):
        users = {u.id: u for u in store.get_users()}

        assert len(users) == 6
        assert users["user-2"].role == "admin"
        assert store.get_user("user-1").name == "Sarah Chen"
        assert store.get_user("nobody") is None

    def test_catalog(self, store):
        assert len(store.get_section_catalog()) == 13

    def test_returned_entities_are_copies(self, store):
        user = store.get_user("user-1")
        user.name = "Changed"

        assert store.get_user("user-1").name == "Sarah Chen"


# ==============================================================================
# Reporting periods and sections
# ==============================================================================

class TestPeriods:
    """Period creation, overlap and configuration edits."""

    def test_simplified_period_has_six_sections(self, store, period):
        sections = store.get_sections(period.id)

        assert len(sections) == 6
        assert [s.order for s in sections] == [1, 2, 3, 4, 5, 6]
        assert all(s.owner_id == "user-1" for s in sections)
        assert sections[0].title == "Energy & Emissions"

    def test_extended_period_has_all_sections(self, store):
        result = store.create_period(CreateReportingPeriodRequest(
            name="FY 2023", start_date="2023-01-01", end_date="2023-12-31",
            reporting_mode="extended", owner_id="user-1",
        ))

        assert result.is_valid
        assert len(store.get_sections(result.data.id)) == 13

    def test_overlap_rejected(self, store, period):
        result = store.create_period(CreateReportingPeriodRequest(
            name="Overlap", start_date="2024-06-01", end_date="2025-05-31", owner_id="user-1",
        ))

        assert result.is_valid is False
        assert result.error_message == (
            "Reporting period overlaps with existing period 'FY 2024' (2024-01-01 - 2024-12-31)."
        )

    @pytest.mark.parametrize("overrides,message", [
        ({"name": " "}, "Name is required."),
        ({"start_date": "soon"}, "Invalid date format. Please provide valid dates."),
        ({"start_date": "2025-12-31"}, "Start date must be before end date."),
        ({"reporting_mode": "full"}, "ReportingMode must be one of: simplified, extended."),
        ({"owner_id": ""}, "OwnerId is required."),
        ({"owner_id": "user-99"}, "Owner with ID 'user-99' not found."),
    ])
    def test_invalid_requests(self, store, overrides, message):
        fields = {
            "name": "FY 2025", "start_date": "2025-01-01", "end_date": "2025-12-31",
            "owner_id": "user-1",
        }
        fields.update(overrides)

        result = store.create_period(CreateReportingPeriodRequest(**fields))

        assert result.error_message == message

    def test_new_period_closes_previous(self, store, period):
        store.create_period(CreateReportingPeriodRequest(
            name="FY 2025", start_date="2025-01-01", end_date="2025-12-31", owner_id="user-1",
        ))

        assert store.get_period(period.id).status == "closed"
        entry = store.get_audit_log(entity_id=period.id, action="update")[0]
        assert entry.user_id == "user-1"
        assert [(c.field, c.old_value, c.new_value) for c in entry.changes] == [
            ("Status", "active", "closed"),
        ]
        assert entry.change_note == "Closed by new reporting period 'FY 2025'"

    def test_mode_change_audits_removed_sections(self, store):
        extended = store.create_period(CreateReportingPeriodRequest(
            name="FY 2023", start_date="2023-01-01", end_date="2023-12-31",
            reporting_mode="extended", owner_id="user-1",
        )).data

        store.update_period(extended.id, UpdateReportingPeriodRequest(
            name="FY 2023", start_date="2023-01-01", end_date="2023-12-31",
            reporting_mode="simplified", updated_by="user-2",
        ))

        remaining = {s.id for s in store.get_sections(extended.id)}
        deleted = store.get_audit_log(entity_type="ReportSection", action="delete")
        assert len(remaining) == 6
        assert len(deleted) == 7
        assert all(e.user_id == "user-2" for e in deleted)
        assert not remaining & {e.entity_id for e in deleted}

    def test_mode_change_resyncs_sections(self, store, period):
        result = store.update_period(period.id, UpdateReportingPeriodRequest(
            name="FY 2024", start_date="2024-01-01", end_date="2024-12-31",
            reporting_mode="extended", updated_by="user-1",
        ))

        assert result.is_valid
        assert len(store.get_sections(period.id)) == 13
        entry = store.get_audit_log(entity_id=period.id, action="update")[0]
        assert [c.field for c in entry.changes] == ["ReportingMode"]

    def test_update_blocked_after_reporting_started(self, store, period, data_point):
        result = store.update_period(period.id, UpdateReportingPeriodRequest(
            name="Renamed", start_date="2024-01-01", end_date="2024-12-31",
            updated_by="user-1",
        ))

        assert result.is_valid is False
        assert result.error_message.startswith("Cannot edit configuration after reporting has started.")

    def test_update_unknown_period(self, store):
        result = store.update_period("nope", UpdateReportingPeriodRequest(updated_by="user-1"))

        assert result.error_message == "Reporting period not found."


class TestSections:
    """Section updates, summaries and deletion."""

    def test_update_owner(self, store, section):
        result = store.update_section(section.id, UpdateSectionRequest(
            owner_id="user-4", updated_by="user-1",
        ))

        assert result.data.owner_id == "user-4"
        entry = store.get_audit_log(entity_type="ReportSection", entity_id=section.id)[0]
        assert entry.changes[0].field == "OwnerId"

    def test_noop_update_writes_no_audit(self, store, section):
        before = _audit_count(store)

        result = store.update_section(section.id, UpdateSectionRequest(
            is_enabled=True, updated_by="user-1",
        ))

        assert result.is_valid
        assert _audit_count(store) == before

    def test_update_requires_author(self, store, section):
        result = store.update_section(section.id, UpdateSectionRequest(is_enabled=False))

        assert result.error_message == "UpdatedBy is required."

    def test_summaries(self, store, period, data_point):
        summary = store.get_section_summaries(period.id)[0]

        assert summary.data_point_count == 1
        assert summary.owner_name == "Sarah Chen"
        assert summary.completeness_percentage == 0
        assert summary.progress_status == "in-progress"

    def test_delete_with_dependents_raises(self, store, section, data_point):
        with pytest.raises(DependentEntityError) as exc_info:
            store.delete_section(section.id, "user-1")

        assert exc_info.value.context["dependents"] == {"DataPoint": 1}
        assert store.get_section(section.id) is not None

    def test_delete_empty_section(self, store, period):
        section = store.get_sections(period.id)[-1]

        assert store.delete_section(section.id, "user-1") is True
        assert store.get_section(section.id) is None
        assert store.delete_section(section.id, "user-1") is False


# ==============================================================================
# Data points
# ==============================================================================

class TestDataPoints:
    """Creation, derived completeness and updates."""

    def test_create_derives_incomplete(self, store, dp_request):
        result = store.create_data_point(dp_request(
            type="narrative", title="Energy use", content="120 MWh", source="Meter",
            information_type="fact", owner_id="", value=None, unit=None,
        ))

        assert result.is_valid
        assert result.data.completeness_status == "incomplete"

    def test_create_is_audited(self, store, data_point):
        entries = store.get_audit_log(entity_id=data_point.id)

        assert len(entries) == 1
        assert entries[0].action == "create"
        assert entries[0].user_name == "John Smith"
        assert entries[0].change_note == "Created data point 'Scope 1 emissions'"

    def test_section_progress_refreshed(self, store, section, data_point):
        assert store.get_section(section.id).progress_status == "in-progress"

    @pytest.mark.parametrize("overrides,message", [
        ({"title": ""}, "Title is required."),
        ({"content": ""}, "Content is required."),
        ({"section_id": ""}, "SectionId is required."),
        ({"owner_id": "user-99"}, "Owner with ID 'user-99' not found."),
        ({"contributor_ids": ["user-3"]}, "Owner cannot also be listed as a contributor."),
        ({"contributor_ids": ["user-99"]}, "Contributor with ID 'user-99' not found."),
        ({"source": ""}, "Source is required."),
        ({"information_type": ""}, "InformationType is required."),
        ({"information_type": "estimate"}, "EstimateType is required when InformationType is 'estimate'."),
        ({"section_id": "nowhere"}, "Section with ID 'nowhere' not found."),
    ])
    def test_create_rejections(self, store, dp_request, overrides, message):
        result = store.create_data_point(dp_request(**overrides))

        assert result.is_valid is False
        assert result.error_message == message
        assert store.get_statistics()["data_points"] == 0

    def test_complete_requires_owner_on_create(self, store, dp_request):
        result = store.create_data_point(dp_request(owner_id="", completeness_status="complete"))

        assert result.error_message == "OwnerId is required when CompletenessStatus is 'complete'."

    def test_update_changes_are_audited(self, store, data_point):
        result = store.update_data_point(
            data_point.id, _update_request(data_point, value="1300", change_note="Restated"),
        )

        assert result.data.value == "1300"
        entry = store.get_audit_log(entity_id=data_point.id, action="update")[0]
        assert [(c.field, c.old_value, c.new_value) for c in entry.changes] == [
            ("Value", "1250", "1300"),
        ]
        assert entry.change_note == "Restated"

    def test_noop_update_writes_no_audit(self, store, data_point):
        before = _audit_count(store)

        result = store.update_data_point(data_point.id, _update_request(data_point))

        assert result.is_valid
        assert _audit_count(store) == before
        assert store.get_data_point(data_point.id).updated_at == data_point.updated_at

    def test_update_unknown(self, store, data_point):
        result = store.update_data_point("nope", _update_request(data_point))

        assert result.error_message == "DataPoint not found."

    def test_attach_evidence_then_complete(self, store, section, dp_request):
        dp = store.create_data_point(dp_request(
            type="narrative", title="Energy use", content="120 MWh", source="Meter",
            owner_id="", value=None, unit=None,
        )).data
        evidence = _evidence(store, section)

        linked = store.link_evidence(evidence.id, dp.id, "user-3")
        assert linked.is_valid

        result = store.update_data_point(dp.id, _update_request(
            linked.data, owner_id="user-3", completeness_status="complete",
        ))

        assert result.is_valid, result.error_message
        assert result.data.completeness_status == "complete"
        assert result.data.evidence_ids == [evidence.id]

    def test_filters(self, store, section, dp_request, data_point):
        store.create_data_point(dp_request(owner_id="user-4", contributor_ids=["user-5"]))

        assert len(store.get_data_points(section_id=section.id)) == 2
        assert [dp.id for dp in store.get_data_points(assigned_user_id="user-3")] == [data_point.id]
        assert len(store.get_data_points(assigned_user_id="user-5")) == 1
        assert len(store.get_data_points_for_period(section.period_id)) == 2

    def test_delete(self, store, section, data_point):
        evidence = _evidence(store, section)
        store.link_evidence(evidence.id, data_point.id, "user-3")

        assert store.delete_data_point(data_point.id, "user-3") is True
        assert store.get_data_point(data_point.id) is None
        assert store.get_evidence_by_id(evidence.id).linked_data_point_ids == []
        assert store.get_audit_log(entity_id=data_point.id)[0].action == "delete"
        assert store.delete_data_point(data_point.id) is False


class TestValidationRules:
    """Rules evaluated at write time."""

    def _rule(self, store, section, rule_type="non-negative", **overrides):
        fields = {
            "section_id": section.id,
            "rule_type": rule_type,
            "error_message": "Value cannot be negative",
            "created_by": "user-1",
        }
        fields.update(overrides)
        result = store.create_validation_rule(CreateValidationRuleRequest(**fields))
        assert result.is_valid, result.error_message
        return result.data

    def test_negative_value_rejected(self, store, section, dp_request):
        self._rule(store, section)
        before = _audit_count(store)

        result = store.create_data_point(dp_request(value="-5"))

        assert result.is_valid is False
        assert result.error_message == "Value cannot be negative"
        assert store.get_data_points(section_id=section.id) == []
        assert _audit_count(store) == before

    def test_update_rejected(self, store, section, data_point):
        self._rule(store, section)

        result = store.update_data_point(data_point.id, _update_request(data_point, value="-1"))

        assert result.error_message == "Value cannot be negative"
        assert store.get_data_point(data_point.id).value == "1250"

    def test_review_and_provenance_flag_run_rules(self, store, section, dp_request):
        created = store.create_data_point(dp_request(unit=None)).data
        ready = store.update_data_point(
            created.id, _update_request(created, review_status="ready-for-review"),
        ).data
        self._rule(store, section, "required-unit", error_message="Unit is required")
        before = _audit_count(store)

        approved = store.approve_data_point(ready.id, ApproveDataPointRequest(reviewed_by="user-1"))
        flagged = store.flag_provenance_for_review(ready.id, FlagProvenanceRequest(
            flagged_by="user-1", reason="ERP figures restated",
        ))

        assert approved.error_message == "Unit is required"
        assert flagged.error_message == "Unit is required"
        current = store.get_data_point(ready.id)
        assert current.review_status == "ready-for-review"
        assert current.provenance_needs_review is False
        assert _audit_count(store) == before

    def test_kind_normalized(self, store, section):
        rule = self._rule(store, section, rule_type="Required-Unit")

        assert rule.rule_type == "required-unit"

    def test_unknown_kind_rejected(self, store, section):
        result = store.create_validation_rule(CreateValidationRuleRequest(
            section_id=section.id, rule_type="positive", error_message="x", created_by="user-1",
        ))

        assert result.is_valid is False
        assert result.error_message.startswith("RuleType must be one of")

    def test_unparseable_allowed_units_fails_open(self, store, section, dp_request):
        self._rule(store, section, rule_type="allowed-units", parameters="kg;tonnes")

        assert store.create_data_point(dp_request(unit="lbs")).is_valid

    def test_deactivated_rule_ignored(self, store, section, dp_request):
        rule = self._rule(store, section)
        store.update_validation_rule(rule.id, UpdateValidationRuleRequest(
            rule_type="non-negative", error_message="Value cannot be negative",
            is_active=False, updated_by="user-1",
        ))

        assert store.get_validation_rules(section.id) == []
        assert len(store.get_validation_rules()) == 1
        assert store.create_data_point(dp_request(value="-5")).is_valid

    def test_update_requires_author(self, store, section):
        rule = self._rule(store, section)

        result = store.update_validation_rule(rule.id, UpdateValidationRuleRequest(
            rule_type="non-negative", error_message="x",
        ))

        assert result.error_message == "UpdatedBy is required."

    def test_delete(self, store, section):
        rule = self._rule(store, section)

        assert store.delete_validation_rule(rule.id, "user-1") is True
        assert store.delete_validation_rule(rule.id, "user-1") is False


# ==============================================================================
# Workflows
# ==============================================================================

class TestGapTransitions:
    """Gap status through the store."""

    def test_full_sequence(self, store, data_point):
        assert _transition(store, data_point.id, "missing").is_valid
        assert _transition(
            store, data_point.id, "estimated", estimate_type="point",
            estimate_method="interpolated from Q1", confidence_level="medium",
        ).is_valid

        result = _transition(store, data_point.id, "provided")

        assert result.is_valid, result.error_message
        dp = result.data
        assert dp.completeness_status == "complete"
        assert dp.is_missing is False
        assert '"estimateMethod": "interpolated from Q1"' in dp.previous_estimate_snapshot
        assert [h.to_status for h in dp.gap_status_history] == ["missing", "estimated", "provided"]

    def test_estimate_type_required(self, store, data_point):
        _transition(store, data_point.id, "missing")

        result = _transition(store, data_point.id, "estimated")

        assert result.error_message == (
            "EstimateType is required when transitioning to 'estimated' status."
        )

    def test_missing_to_provided_skips(self, store, data_point):
        _transition(store, data_point.id, "missing")

        result = _transition(store, data_point.id, "provided")

        assert result.error_message.startswith("Cannot skip 'estimated' state.")
        assert store.get_data_point(data_point.id).gap_status == "missing"

    def test_denied_transition_is_audited(self, store, data_point):
        before = _audit_count(store)

        result = _transition(store, data_point.id, "missing", user="user-5")

        assert result.is_valid is False
        assert result.error_message.startswith("Permission denied")
        assert _audit_count(store) == before + 1
        entry = store.get_audit_log(action="transition-gap-status-denied")[0]
        assert entry.user_id == "user-5"
        assert store.get_data_point(data_point.id).gap_status == ""

    def test_period_owner_and_admin_allowed(self, store, data_point):
        assert _transition(store, data_point.id, "missing", user="user-1").is_valid
        assert _transition(
            store, data_point.id, "estimated", user="user-2", estimate_type="range",
            estimate_method="Industry average", confidence_level="low",
        ).is_valid

    def test_unknown_user(self, store, data_point):
        result = _transition(store, data_point.id, "missing", user="user-99")

        assert result.error_message == "User with ID 'user-99' not found."


class TestReview:
    """Approval, change requests and approved read-only state."""

    @pytest.fixture
    def ready(self, store, data_point):
        result = store.update_data_point(
            data_point.id, _update_request(data_point, review_status="ready-for-review"),
        )
        assert result.is_valid
        return result.data

    def test_approve(self, store, ready):
        result = store.approve_data_point(ready.id, ApproveDataPointRequest(reviewed_by="user-1"))

        assert result.data.review_status == "approved"
        assert result.data.reviewed_by == "user-1"
        assert store.get_audit_log(entity_id=ready.id, action="approve")

    def test_approve_requires_ready_status(self, store, data_point):
        result = store.approve_data_point(
            data_point.id, ApproveDataPointRequest(reviewed_by="user-1"),
        )

        assert result.error_message == (
            "Data point must be in 'ready-for-review' status to be approved."
        )

    def test_request_changes_needs_comments(self, store, ready):
        result = store.request_changes(ready.id, RequestChangesRequest(reviewed_by="user-1"))

        assert result.error_message == "Review comments are required when requesting changes."

    def test_request_changes_blocks_section(self, store, section, ready):
        result = store.request_changes(ready.id, RequestChangesRequest(
            reviewed_by="user-1", review_comments="Cite the invoice numbers",
        ))

        assert result.data.review_status == "changes-requested"
        assert store.get_section(section.id).progress_status == "blocked"

    def test_approved_is_read_only(self, store, ready):
        approved = store.approve_data_point(
            ready.id, ApproveDataPointRequest(reviewed_by="user-1"),
        ).data

        assert store.update_data_point(
            approved.id, _update_request(approved, title="Changed"),
        ).error_message == APPROVED_READ_ONLY
        assert _transition(store, approved.id, "missing").error_message == APPROVED_READ_ONLY
        assert store.flag_missing_data(approved.id, FlagMissingDataRequest(
            flagged_by="user-3", missing_reason_category="other", missing_reason="x",
        )).error_message == APPROVED_READ_ONLY

    def test_approved_check_precedes_payload_checks(self, store, ready):
        approved = store.approve_data_point(
            ready.id, ApproveDataPointRequest(reviewed_by="user-1"),
        ).data

        result = store.update_data_point(approved.id, _update_request(approved, title=""))

        assert result.error_message == APPROVED_READ_ONLY

    def test_review_status_only_change_allowed_when_approved(self, store, ready):
        approved = store.approve_data_point(
            ready.id, ApproveDataPointRequest(reviewed_by="user-1"),
        ).data

        result = store.update_data_point(
            approved.id, _update_request(approved, review_status="draft", updated_by="user-2"),
        )

        assert result.is_valid
        assert result.data.review_status == "draft"


class TestCompletenessStatus:
    """Explicit status changes and missing-data flags."""

    def test_complete_lists_missing_fields(self, store, dp_request):
        dp = store.create_data_point(dp_request(value=None, deadline=None, owner_id="")).data

        result = store.update_data_point_status(dp.id, UpdateDataPointStatusRequest(
            completeness_status="complete", updated_by="user-3",
        ))

        assert result.error_message == "Cannot mark data point as complete. Required fields are missing."
        assert [m.field for m in result.missing_fields] == ["Value", "Period", "Owner"]

    def test_complete_succeeds(self, store, data_point):
        result = store.update_data_point_status(data_point.id, UpdateDataPointStatusRequest(
            completeness_status="complete", updated_by="user-3",
        ))

        assert result.data.completeness_status == "complete"
        assert store.get_audit_log(entity_id=data_point.id, action="update-status")

    def test_flag_and_unflag_missing(self, store, data_point):
        flagged = store.flag_missing_data(data_point.id, FlagMissingDataRequest(
            flagged_by="user-3",
            missing_reason_category="unavailable-from-supplier",
            missing_reason="Supplier has not reported",
        ))

        assert flagged.data.is_missing is True
        assert flagged.data.completeness_status == "missing"

        unflagged = store.unflag_missing_data(
            data_point.id, UnflagMissingDataRequest(unflagged_by="user-3"),
        )

        assert unflagged.data.is_missing is False
        assert unflagged.data.completeness_status == "incomplete"
        assert unflagged.data.missing_reason is None

    @pytest.mark.parametrize("request_fields,message", [
        ({"missing_reason_category": "other", "missing_reason": "x"}, "FlaggedBy is required."),
        ({"flagged_by": "user-3", "missing_reason_category": "other"}, "MissingReason cannot be empty."),
        ({"flagged_by": "user-3", "missing_reason_category": "lost", "missing_reason": "x"},
         "MissingReasonCategory must be one of: not-measured, not-applicable, "
         "unavailable-from-supplier, data-quality-issue, system-limitation, other."),
    ])
    def test_flag_rejections(self, store, data_point, request_fields, message):
        result = store.flag_missing_data(data_point.id, FlagMissingDataRequest(**request_fields))

        assert result.error_message == message

    def test_unflag_when_not_flagged(self, store, data_point):
        result = store.unflag_missing_data(
            data_point.id, UnflagMissingDataRequest(unflagged_by="user-3"),
        )

        assert result.error_message == "Data point is not currently flagged as missing."

    def test_flag_provenance(self, store, data_point):
        result = store.flag_provenance_for_review(data_point.id, FlagProvenanceRequest(
            flagged_by="user-1", reason="ERP figures restated",
        ))

        assert result.data.provenance_needs_review is True
        assert result.data.provenance_review_reason == "ERP figures restated"


# ==============================================================================
# Evidence, gaps and completion exceptions
# ==============================================================================

class TestEvidence:
    """Evidence registration and links."""

    def test_checksum(self, store, section):
        evidence = _evidence(store, section)

        assert len(evidence.checksum) == 64
        assert store.get_evidence(section.id)[0].id == evidence.id

    @pytest.mark.parametrize("overrides,message", [
        ({"title": ""}, "Title is required."),
        ({"uploaded_by": ""}, "UploadedBy is required."),
        ({"source_url": None}, "Either a file or a source URL must be provided."),
        ({"source_url": "ftp://example.com/a.pdf"}, "Source URL must be a valid HTTP or HTTPS URL."),
        ({"source_url": "https://example.com/" + "a" * 2048},
         "Source URL must not exceed 2048 characters."),
    ])
    def test_rejections(self, store, section, overrides, message):
        fields = {
            "section_id": section.id, "title": "Doc",
            "source_url": "https://example.com/doc.pdf", "uploaded_by": "user-3",
        }
        fields.update(overrides)

        result = store.create_evidence(CreateEvidenceRequest(**fields))

        assert result.error_message == message

    def test_file_only(self, store, section):
        evidence = _evidence(store, section, source_url=None, file_name="invoices.pdf")

        assert evidence.file_name == "invoices.pdf"

    def test_link_and_unlink(self, store, section, data_point):
        evidence = _evidence(store, section)

        assert store.link_evidence(evidence.id, data_point.id, "user-3").is_valid
        assert store.link_evidence(evidence.id, data_point.id, "user-3").error_message == (
            "Evidence is already linked to this data point."
        )
        assert store.get_evidence_by_id(evidence.id).linked_data_point_ids == [data_point.id]

        assert store.unlink_evidence(evidence.id, data_point.id, "user-3").is_valid
        assert store.unlink_evidence(evidence.id, data_point.id, "user-3").error_message == (
            "Evidence is not linked to this data point."
        )
        actions = [e.action for e in store.get_audit_log(entity_id=data_point.id)]
        assert actions[:2] == ["unlink-evidence", "link-evidence"]

    def test_delete_removes_links(self, store, section, data_point):
        evidence = _evidence(store, section)
        store.link_evidence(evidence.id, data_point.id, "user-3")

        assert store.delete_evidence(evidence.id, "user-3") is True
        assert store.get_data_point(data_point.id).evidence_ids == []

    def test_delete_audits_unlinked_data_points(self, store, section, data_point):
        evidence = _evidence(store, section)
        store.link_evidence(evidence.id, data_point.id, "user-3")

        store.delete_evidence(evidence.id, "user-4")

        entry = store.get_audit_log(entity_id=data_point.id)[0]
        assert entry.action == "unlink-evidence"
        assert entry.user_id == "user-4"
        assert entry.changes[0].field == "EvidenceIds"
        assert entry.change_note == "Unlinked evidence 'Fuel invoices 2024'"
        assert store.get_audit_log(entity_id=evidence.id)[0].action == "delete"


class TestGaps:
    """Reporting gaps."""

    def test_lifecycle(self, store, section):
        gap = store.create_gap(CreateGapRequest(
            section_id=section.id, title="No Scope 3 data", impact="high", created_by="user-1",
        )).data

        resolved = store.resolve_gap(gap.id, GapResolutionRequest(user_id="user-1"))
        assert resolved.data.resolved is True
        assert store.resolve_gap(gap.id, GapResolutionRequest(user_id="user-1")).error_message == (
            "Gap is already resolved."
        )

        reopened = store.reopen_gap(gap.id, GapResolutionRequest(user_id="user-1"))
        assert reopened.data.resolved is False
        assert store.reopen_gap(gap.id, GapResolutionRequest(user_id="user-1")).error_message == (
            "Gap is not resolved."
        )
        actions = [e.action for e in store.get_audit_log(entity_id=gap.id)]
        assert actions == ["reopen", "resolve", "create"]

    def test_invalid_impact(self, store, section):
        result = store.create_gap(CreateGapRequest(
            section_id=section.id, title="Gap", impact="severe", created_by="user-1",
        ))

        assert result.error_message == "Impact must be one of: low, medium, high."

    def test_open_gaps_counted(self, store, period, section):
        store.create_gap(CreateGapRequest(section_id=section.id, title="Gap", created_by="user-1"))

        assert store.get_section_summaries(period.id)[0].gap_count == 1


class TestCompletionExceptions:
    """Exemptions from the completeness denominator."""

    def _request(self, section, data_point, **overrides):
        fields = {
            "section_id": section.id,
            "data_point_id": data_point.id,
            "title": "Supplier data unavailable",
            "exception_type": "missing-data",
            "justification": "Supplier reports after the filing deadline",
            "requested_by": "user-3",
        }
        fields.update(overrides)
        return CreateCompletionExceptionRequest(**fields)

    def test_approve_counts_in_report(self, store, period, section, data_point):
        exc = store.create_completion_exception(self._request(section, data_point)).data

        approved = store.approve_completion_exception(
            exc.id, ReviewCompletionExceptionRequest(reviewed_by="user-2"),
        )
        assert approved.data.status == "accepted"

        report = store.get_completeness_validation_report(period.id).data
        detail = report.sections[0]
        assert detail.exempted_data_points == 1
        assert detail.completeness_with_exceptions_percentage == 100.0

    def test_reject_needs_comments(self, store, section, data_point):
        exc = store.create_completion_exception(self._request(section, data_point)).data

        result = store.reject_completion_exception(
            exc.id, ReviewCompletionExceptionRequest(reviewed_by="user-2"),
        )

        assert result.error_message == "Review comments are required when rejecting an exception."

    def test_only_pending_reviewed(self, store, section, data_point):
        exc = store.create_completion_exception(self._request(section, data_point)).data
        store.reject_completion_exception(exc.id, ReviewCompletionExceptionRequest(
            reviewed_by="user-2", review_comments="Collect the data",
        ))

        result = store.approve_completion_exception(
            exc.id, ReviewCompletionExceptionRequest(reviewed_by="user-2"),
        )

        assert result.error_message == "Only pending exceptions can be approved."
        assert len(store.get_completion_exceptions(status="rejected")) == 1

    def test_data_point_of_other_section(self, store, period, data_point):
        other = store.get_sections(period.id)[1]

        result = store.create_completion_exception(self._request(other, data_point))

        assert result.error_message == "Data point does not belong to the specified section."

    def test_expiry_parsed(self, store, section, data_point):
        exc = store.create_completion_exception(
            self._request(section, data_point, expires_at="2025-06-30"),
        ).data

        assert exc.expires_at.isoformat() == "2025-06-30T00:00:00+00:00"

    def test_invalid_expiry(self, store, section, data_point):
        result = store.create_completion_exception(
            self._request(section, data_point, expires_at="someday"),
        )

        assert result.error_message == "Invalid expiration date format."

    def test_referenced_data_point_cannot_be_deleted(self, store, section, data_point):
        store.create_completion_exception(self._request(section, data_point))

        with pytest.raises(DependentEntityError):
            store.delete_data_point(data_point.id, "user-3")

        assert store.get_data_point(data_point.id) is not None


# ==============================================================================
# Consistency validation and publication
# ==============================================================================

class TestPublication:
    """Period-wide validation gate."""

    @pytest.fixture
    def single_section_period(self, store, period, section):
        for other in store.get_sections(period.id)[1:]:
            result = store.update_section(other.id, UpdateSectionRequest(
                is_enabled=False, updated_by="user-1",
            ))
            assert result.is_valid
        return period

    def test_empty_enabled_section(self, store, single_section_period):
        result = store.run_consistency_validation(RunValidationRequest(
            period_id=single_section_period.id, validated_by="user-1",
        ))

        assert len(result.issues) == 1
        assert result.issues[0].rule_type == "missing-required-field"
        assert result.issues[0].severity == "error"
        assert result.can_publish is False

    def test_validation_is_repeatable(self, store, period, data_point):
        request = RunValidationRequest(period_id=period.id, validated_by="user-1")

        first = store.run_consistency_validation(request)
        second = store.run_consistency_validation(request)

        assert (first.error_count, first.warning_count, first.info_count) == (
            second.error_count, second.warning_count, second.info_count,
        )

    def test_publish_blocked(self, store, period):
        result = store.publish_period(PublishReportRequest(
            period_id=period.id, published_by="user-1",
        ))

        assert result.is_valid is False
        assert result.error_message.startswith("Cannot publish report: validation found 6 error(s).")
        assert store.get_period(period.id).status == "active"

    def test_override_requires_justification(self, store, period):
        result = store.publish_period(PublishReportRequest(
            period_id=period.id, published_by="user-1", override_validation=True,
        ))

        assert result.error_message == "Override justification is required when overriding validation."

    def test_override_denied_for_contributor(self, store, period):
        before = _audit_count(store)

        result = store.publish_period(PublishReportRequest(
            period_id=period.id, published_by="user-3",
            override_validation=True, override_justification="Deadline",
        ))

        assert result.error_message.startswith("Permission denied")
        assert _audit_count(store) == before + 1
        assert store.get_audit_log(action="publish-denied")[0].user_id == "user-3"

    def test_override_by_owner(self, store, period):
        result = store.publish_period(PublishReportRequest(
            period_id=period.id, published_by="user-1",
            override_validation=True, override_justification="Regulator deadline",
        ))

        assert result.is_valid
        assert result.data.validation_overridden is True
        assert result.data.override_justification == "Regulator deadline"
        assert store.get_period(period.id).status == "published"

    def test_clean_publish_stamps_data_points(self, store, single_section_period, dp_request):
        dp = store.create_data_point(dp_request(completeness_status="complete")).data

        result = store.publish_period(PublishReportRequest(
            period_id=single_section_period.id, published_by="user-1",
        ))

        assert result.is_valid, result.error_message
        assert result.data.validation_result.status == "passed"
        assert result.data.validation_overridden is False
        assert len(store.get_data_point(dp.id).publication_source_hash) == 64

        again = store.publish_period(PublishReportRequest(
            period_id=single_section_period.id, published_by="user-1",
        ))
        assert again.error_message == "Reporting period is already published."


# ==============================================================================
# Audit log, reminders and statistics
# ==============================================================================

class TestAuditLog:
    """Queries and chain verification through the store."""

    def test_owner_filter(self, store, dp_request, data_point):
        other = store.create_data_point(dp_request(owner_id="user-4", created_by="user-4")).data

        entries = store.get_audit_log(owner_id="user-4")

        assert [e.entity_id for e in entries] == [other.id]

    def test_chain_intact(self, store, data_point):
        _transition(store, data_point.id, "missing")

        result = store.verify_audit_chain()

        assert result.is_valid is True
        assert result.entries_checked == _audit_count(store)

    def test_count_never_decreases(self, store, section, data_point):
        counts = [_audit_count(store)]
        _transition(store, data_point.id, "missing", user="user-6")
        counts.append(_audit_count(store))
        store.update_data_point(data_point.id, _update_request(data_point))
        counts.append(_audit_count(store))
        store.delete_data_point(data_point.id, "user-3")
        counts.append(_audit_count(store))

        assert counts == sorted(counts)
        assert store.get_audit_log(entity_id=data_point.id)


class TestConcurrency:
    """Public operations serialize on the store lock."""

    WORKERS = 20

    def test_concurrent_writes_keep_chain_intact(self, store, period, dp_request):
        results = []
        start = threading.Barrier(self.WORKERS)

        def _worker(index):
            request = dp_request(title=f"Metric {index}")
            start.wait()
            created = store.create_data_point(request)
            transitioned = _transition(store, created.data.id, "missing")
            results.append((created.is_valid, transitioned.is_valid))

        threads = [
            threading.Thread(target=_worker, args=(i,)) for i in range(self.WORKERS)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == [(True, True)] * self.WORKERS
        assert store.get_statistics()["data_points"] == self.WORKERS
        # one entry for the period plus a create and a transition per worker
        assert len(store.get_audit_log()) == 1 + 2 * self.WORKERS
        assert store.verify_audit_chain().is_valid
        missing = store.get_data_points(section_id=dp_request().section_id)
        assert all(dp.gap_status == "missing" for dp in missing)


class TestReminders:
    """Reminder configuration and history."""

    def test_defaults(self, store, period):
        config = store.get_reminder_configuration(period.id)

        assert config.days_before_deadline == [7, 3, 1]
        assert config.check_frequency_hours == 24

    def test_save_normalizes_days(self, store, period):
        result = store.save_reminder_configuration(period.id, True, [3, 14, 3, 7], 12)

        assert result.data.days_before_deadline == [14, 7, 3]
        assert store.get_reminder_configuration(period.id).check_frequency_hours == 12

    def test_save_rejections(self, store, period):
        assert store.save_reminder_configuration("nope", True, [7], 24).error_message == (
            "Reporting period not found."
        )
        assert store.save_reminder_configuration(period.id, True, [], 24).is_valid is False
        assert store.save_reminder_configuration(period.id, True, [7], 0).error_message == (
            "CheckFrequencyHours must be positive."
        )

    def test_history(self, store, data_point):
        store.record_reminder_sent(ReminderHistory(
            data_point_id=data_point.id, recipient_user_id="user-3", days_until_deadline=7,
        ))

        assert store.has_reminder_been_sent_today(data_point.id, 7) is True
        assert store.has_reminder_been_sent_today(data_point.id, 3) is False
        assert len(store.get_reminder_history(recipient_user_id="user-3")) == 1
        assert store.get_reminder_history(data_point_id="other") == []


class TestStatistics:

    def test_counts(self, store, data_point):
        stats = store.get_statistics()

        assert stats["users"] == 6
        assert stats["periods"] == 1
        assert stats["sections"] == 6
        assert stats["data_points"] == 1
        assert stats["audit_entries"] == 2
