"""ContractService tests: generation, provenance, lifecycle, sub-contracts."""

from __future__ import annotations

from datetime import date, datetime, timezone

from src.marketplace.contracts.generation import ContractService
from src.marketplace.contracts.validator import STATUS_TRANSITIONS, can_transition
from src.marketplace.models import (
    Opportunity,
    PaymentTerms,
    Proposal,
    ProposalAcceptance,
    ProposalVersion,
    ServiceItem,
)
from src.marketplace.store.memory import load_sample_store

FIXED_NOW = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)


def _service(store=None) -> ContractService:
    return ContractService(store or load_sample_store(), clock=lambda: FIXED_NOW)


def _signed_off_contract(service: ContractService):
    result = service.create_from_proposal("prop-ring-road")
    assert result.success, result.error
    return result.contract


class TestCreateFromProposal:
    def test_contract_from_mutual_version(self):
        result = _service().create_from_proposal("prop-ring-road")
        assert result.success
        assert result.warnings == []
        c = result.contract
        assert c.contract_type == "PROJECT_CONTRACT"
        assert c.scope_type == "PROJECT"
        assert c.scope_id == "opp-cairo-ring-road"
        assert c.status == "DRAFT"
        assert c.buyer_party_type == "BENEFICIARY"
        assert c.provider_party_type == "VENDOR_CORPORATE"
        assert c.created_at == FIXED_NOW

    def test_provenance_and_version_payment_terms(self):
        c = _service().create_from_proposal("prop-ring-road").contract
        assert c.source_proposal_id == "prop-ring-road"
        assert c.source_proposal_version == 3
        # version 3 terms win over the opportunity's CASH default
        assert c.payment_terms.mode == "HYBRID"
        assert c.payment_terms.cash_settlement == 15000

    def test_schedule_and_totals(self):
        c = _service().create_from_proposal("prop-ring-road").contract
        assert [item.total for item in c.services_schedule] == [120000, 15000]
        assert c.total_value == 135000
        assert c.terms["pricing"] == {"amount": 135000.0, "currency": "SAR"}
        assert c.terms["deliverables"] == ["HSE plan", "Monthly site reports"]
        assert c.start_date == date(2026, 11, 1)
        assert c.end_date == date(2027, 4, 30)

    def test_requested_version(self):
        c = _service().create_from_proposal("prop-ring-road", version=2).contract
        assert c.source_proposal_version == 2
        assert c.payment_terms.mode == "CASH"

    def test_opportunity_payment_fallback_warns(self):
        result = _service().create_from_proposal("prop-ring-road", version=1)
        assert result.success
        assert result.contract.payment_terms.mode == "CASH"
        assert any("opportunity defaults" in w for w in result.warnings)

    def test_cash_default_when_no_terms_anywhere(self):
        store = load_sample_store()
        opp = store.get_opportunity("opp-cairo-ring-road")
        store.put_opportunity(opp.model_copy(update={"payment_terms": None}))
        result = _service(store).create_from_proposal("prop-ring-road", version=1)
        assert result.contract.payment_terms.mode == "CASH"
        assert any("defaulted to CASH" in w for w in result.warnings)

    def test_requested_version_differs_from_accepted(self, caplog):
        result = _service().create_from_proposal("prop-ring-road", version=2)
        assert result.success
        assert any("v3 is the mutually accepted version" in w for w in result.warnings)
        assert "not accepted v3" in caplog.text

    def test_requested_accepted_version_no_warning(self):
        result = _service().create_from_proposal("prop-ring-road", version=3)
        assert result.warnings == []

    def test_multi_party_payment_fallback_warns(self):
        store = load_sample_store()
        opp = store.get_opportunity("opp-jv-tower")
        store.put_opportunity(opp.model_copy(update={"payment_terms": PaymentTerms(mode="BARTER")}))
        result = _service(store).create_from_proposal("prop-jv-tower")
        assert result.success, result.errors
        assert result.contract.payment_terms.mode == "BARTER"
        assert any("opportunity defaults" in w for w in result.warnings)

    def test_not_mutually_accepted(self):
        result = _service().create_from_proposal("prop-ring-road-negotiating")
        assert not result.success
        assert result.code == "PRECONDITION_FAILED"
        assert not result.retryable

    def test_missing_proposal(self):
        result = _service().create_from_proposal("nope")
        assert not result.success
        assert result.code == "NOT_FOUND"

    def test_unknown_requested_version(self):
        result = _service().create_from_proposal("prop-ring-road", version=7)
        assert result.code == "NOT_FOUND"

    def test_multi_party_archetype_delegates(self):
        result = _service().create_from_proposal("prop-spv-port")
        assert result.success, result.error
        assert result.contract.contract_type == "SPV_CONTRACT"
        assert result.contract.is_multi_party
        assert result.requires_consent

    def test_mega_project_contract_type(self):
        store = load_sample_store()
        store.put_opportunity(Opportunity(
            id="opp-mega", kind="MEGA_PROJECT", status="PUBLISHED", creator_id="owner-1",
        ))
        store.put_proposal(Proposal(
            id="prop-mega", opportunity_id="opp-mega", owner_id="owner-1", bidder_id="vendor-1",
            status="FINAL_ACCEPTED", versions=[ProposalVersion(version=1)],
            acceptance=ProposalAcceptance(mutually_accepted_version=1),
        ))
        c = _service(store).create_from_proposal("prop-mega").contract
        assert c.contract_type == "MEGA_PROJECT_CONTRACT"
        assert c.scope_type == "MEGA_PROJECT"

    def test_service_provider_cannot_contract_for_project(self):
        store = load_sample_store()
        store.put_proposal(Proposal(
            id="prop-sp", opportunity_id="opp-cairo-ring-road", proposal_type="SERVICE_OFFER",
            owner_id="owner-1", bidder_id="sp-1", status="FINAL_ACCEPTED",
            versions=[ProposalVersion(version=1)],
            acceptance=ProposalAcceptance(mutually_accepted_version=1),
        ))
        result = _service(store).create_from_proposal("prop-sp")
        assert not result.success
        assert any("ServiceProvider cannot contract" in e for e in result.errors)
        assert store.list_contracts(party_id="sp-1") == []


class TestCreateFromServiceOffer:
    def test_accepted_offer(self):
        result = _service().create_from_service_offer("so-hse-audit")
        assert result.success, result.errors
        c = result.contract
        assert c.contract_type == "SERVICE_CONTRACT"
        assert c.scope_type == "SERVICE_REQUEST"
        assert c.scope_id == "sr-hse-audit"
        assert c.buyer_party_type == "BENEFICIARY"
        assert c.provider_party_type == "SERVICE_PROVIDER"
        assert c.source_service_offer_id == "so-hse-audit"
        assert c.total_value == 18000

    def test_offer_must_be_accepted(self):
        store = load_sample_store()
        offer = store.get_service_offer("so-hse-audit")
        store.put_service_offer(offer.model_copy(update={"status": "SUBMITTED"}))
        result = _service(store).create_from_service_offer("so-hse-audit")
        assert result.code == "PRECONDITION_FAILED"

    def test_missing_offer(self):
        assert _service().create_from_service_offer("nope").code == "NOT_FOUND"


class TestLifecycle:
    def test_full_path(self):
        service = _service()
        c = _signed_off_contract(service)
        assert service.send_contract(c.id).contract.status == "SENT"
        signed = service.sign_contract(c.id, "owner-1").contract
        assert signed.status == "SIGNED"
        assert signed.signed_by == "owner-1"
        assert signed.signed_at == FIXED_NOW
        assert service.activate_contract(c.id).contract.status == "ACTIVE"
        done = service.complete_contract(c.id).contract
        assert done.status == "COMPLETED"
        assert done.completed_at == FIXED_NOW

    def test_sign_from_draft(self):
        service = _service()
        c = _signed_off_contract(service)
        assert service.sign_contract(c.id, "vendor-1").contract.status == "SIGNED"

    def test_signer_must_be_party(self):
        service = _service()
        c = _signed_off_contract(service)
        result = service.sign_contract(c.id, "vendor-2")
        assert result.code == "PRECONDITION_FAILED"
        assert service.get_contract(c.id).status == "DRAFT"

    def test_cannot_sign_active(self):
        service = _service()
        c = _signed_off_contract(service)
        service.sign_contract(c.id, "vendor-1")
        service.activate_contract(c.id)
        assert service.sign_contract(c.id, "vendor-1").code == "STATE_TRANSITION_INVALID"

    def test_cannot_activate_draft(self):
        service = _service()
        c = _signed_off_contract(service)
        assert service.activate_contract(c.id).code == "STATE_TRANSITION_INVALID"

    def test_sent_back_to_draft(self):
        service = _service()
        c = _signed_off_contract(service)
        service.send_contract(c.id)
        assert service.update_contract_status(c.id, "DRAFT").contract.status == "DRAFT"

    def test_terminate_requires_reason(self):
        service = _service()
        c = _signed_off_contract(service)
        assert service.terminate_contract(c.id, "  ").code == "PRECONDITION_FAILED"

    def test_terminate_from_any_non_terminal(self):
        service = _service()
        c = _signed_off_contract(service)
        service.send_contract(c.id)
        t = service.terminate_contract(c.id, "Budget withdrawn").contract
        assert t.status == "TERMINATED"
        assert t.termination_reason == "Budget withdrawn"
        assert t.terminated_at == FIXED_NOW

    def test_terminal_states_are_final(self):
        service = _service()
        c = _signed_off_contract(service)
        service.terminate_contract(c.id, "Cancelled")
        assert service.terminate_contract(c.id, "Again").code == "STATE_TRANSITION_INVALID"
        assert service.send_contract(c.id).code == "STATE_TRANSITION_INVALID"

    def test_signed_needs_dedicated_operation(self):
        service = _service()
        c = _signed_off_contract(service)
        assert service.update_contract_status(c.id, "SIGNED").code == "PRECONDITION_FAILED"

    def test_missing_contract(self):
        assert _service().sign_contract("nope", "owner-1").code == "NOT_FOUND"

    def test_status_table(self):
        assert can_transition("ACTIVE", "COMPLETED")
        assert not can_transition("COMPLETED", "TERMINATED")
        for status, targets in STATUS_TRANSITIONS.items():
            if targets:
                assert "TERMINATED" in targets, status


class TestSubContracts:
    def test_sub_contract_under_vendor(self):
        service = _service()
        parent = _signed_off_contract(service)
        result = service.create_sub_contract(
            parent.id, "sub-1",
            service_items=[ServiceItem(name="Formwork", quantity=10, unit="day", unit_price=2000)],
        )
        assert result.success, result.errors
        sub = result.contract
        assert sub.contract_type == "SUB_CONTRACT"
        assert sub.parent_contract_id == parent.id
        assert sub.buyer_party_id == "vendor-1"
        assert sub.provider_party_type == "SUB_CONTRACTOR"
        assert sub.payment_terms.mode == "HYBRID"
        assert [c.id for c in service.sub_contracts(parent.id)] == [sub.id]

    def test_sub_contractor_role_required(self):
        service = _service()
        parent = _signed_off_contract(service)
        result = service.create_sub_contract(parent.id, "sp-1")
        assert not result.success
        assert any("SUB_CONTRACTOR" in e for e in result.errors)

    def test_parent_must_be_project_contract(self):
        service = _service()
        parent = service.create_from_service_offer("so-hse-audit").contract
        result = service.create_sub_contract(parent.id, "sub-1")
        assert not result.success

    def test_missing_parent(self):
        assert _service().create_sub_contract("nope", "sub-1").code == "NOT_FOUND"


class TestQueries:
    def test_by_party_and_scope(self):
        service = _service()
        c = _signed_off_contract(service)
        service.create_from_service_offer("so-hse-audit")
        assert {x.id for x in service.contracts_by_party("vendor-1")} == {c.id}
        assert len(service.contracts_by_party("owner-1")) == 2
        assert [x.id for x in service.contracts_by_scope("PROJECT", "opp-cairo-ring-road")] == [c.id]
