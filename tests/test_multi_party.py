"""Multi-party contracts: share validation, archetype generation, consent."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from src.marketplace.contracts.generation import ContractService
from src.marketplace.contracts.multi_party import MultiPartyContractService
from src.marketplace.models import CollaborationApplication
from src.marketplace.store.memory import load_sample_store

FIXED_NOW = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)


def _service(store=None) -> MultiPartyContractService:
    return MultiPartyContractService(store or load_sample_store(), clock=lambda: FIXED_NOW)


def _parties(*shares: float) -> list[dict]:
    return [
        {"party_id": f"party-{i}", "party_type": "VENDOR_CORPORATE", "share": s}
        for i, s in enumerate(shares)
    ]


def _consortium(service: MultiPartyContractService):
    result = service.generate_consortium_contract("prop-consortium-metro")
    assert result.success, result.errors
    return result.contract


class TestShareValidation:
    def test_short_of_hundred_rejected(self):
        store = load_sample_store()
        result = _service(store).create_multi_party_contract("prop-spv-port", _parties(50, 49))
        assert not result.success
        assert result.code == "PRECONDITION_FAILED"
        assert "current: 99%" in result.error
        assert store.list_contracts() == []

    def test_exact_hundred(self):
        result = _service().create_multi_party_contract("prop-spv-port", _parties(50, 50))
        assert result.success, result.errors
        assert result.requires_consent
        assert result.all_consented is False
        assert [p.consent_status for p in result.contract.parties] == ["PENDING", "PENDING"]

    def test_thirds_within_tolerance(self):
        result = _service().create_multi_party_contract(
            "prop-spv-port", _parties(33.33, 33.33, 33.34),
        )
        assert result.success, result.errors

    def test_single_party_rejected(self):
        result = _service().create_multi_party_contract("prop-spv-port", _parties(100))
        assert result.code == "PRECONDITION_FAILED"
        assert "at least 2" in result.error

    def test_duplicate_party_rejected(self):
        parties = [
            {"party_id": "a", "share": 50},
            {"party_id": "a", "share": 50},
        ]
        assert _service().create_multi_party_contract("prop-spv-port", parties).code == "PRECONDITION_FAILED"

    def test_malformed_party_rejected(self):
        parties = [{"party_id": "", "share": 50}, {"party_id": "b", "share": 150}]
        result = _service().create_multi_party_contract("prop-spv-port", parties)
        assert result.code == "PRECONDITION_FAILED"
        assert len(result.errors) == 2

    def test_type_not_derivable_from_project(self):
        result = _service().create_multi_party_contract("prop-ring-road", _parties(50, 50))
        assert result.code == "PRECONDITION_FAILED"

    def test_explicit_type_must_be_multi_party(self):
        result = _service().create_multi_party_contract(
            "prop-spv-port", _parties(50, 50), contract_type="PROJECT_CONTRACT",
        )
        assert result.code == "PRECONDITION_FAILED"

    def test_ineligible_proposal(self):
        result = _service().create_multi_party_contract("prop-ring-road-negotiating", _parties(50, 50))
        assert result.code == "PRECONDITION_FAILED"


class TestArchetypes:
    def test_spv(self):
        result = _service().generate_spv_contract("prop-spv-port")
        assert result.success, result.errors
        c = result.contract
        assert c.contract_type == "SPV_CONTRACT"
        assert [(p.party_id, p.share) for p in c.parties] == [("owner-2", 50.0), ("vendor-2", 50.0)]
        assert c.parties[0].party_type == "BENEFICIARY"
        assert c.parties[0].role == "OWNER"
        gov = c.governance_structure
        assert gov.legal_structure == "Limited Liability Company"
        assert gov.risk_isolation
        assert gov.board.members[0].role == "CHAIRMAN"
        assert gov.regulatory_compliance.licenses == ["Ports Authority Concession"]
        assert gov.debt_financing == "60% senior debt"
        assert c.source_proposal_version == 1

    def test_spv_value_floor(self):
        store = load_sample_store()
        opp = store.get_opportunity("opp-spv-port")
        store.put_opportunity(opp.model_copy(update={"project_value": 10_000_000}))
        result = _service(store).generate_spv_contract("prop-spv-port")
        assert result.code == "PRECONDITION_FAILED"
        assert "50,000,000" in result.error

    def test_jv_uses_declared_split(self):
        c = _service().generate_jv_contract("prop-jv-tower").contract
        assert c.contract_type == "JV_CONTRACT"
        assert [(p.party_id, p.share) for p in c.parties] == [("owner-2", 60.0), ("vendor-1", 40.0)]
        gov = c.governance_structure
        assert gov.lead_party_id == "owner-2"
        assert gov.decision_making == "Lead partner with consultation"
        assert [r.role for r in gov.roles] == ["LEAD_PARTNER", "PARTNER"]
        assert gov.exit_strategy["buyout"] == "Available after 2 years"
        # agreed per-party version, no mutual field
        assert c.source_proposal_version == 2
        assert c.terms["pricing"]["amount"] == 40_000_000

    def test_consortium_with_approved_applicant(self):
        c = _consortium(_service())
        assert [p.party_id for p in c.parties] == ["owner-1", "vendor-2", "vendor-1"]
        assert [p.share for p in c.parties] == [33.33, 33.33, 33.34]
        gov = c.governance_structure
        assert gov.lead_party_id == "vendor-1"
        assert [wp.assigned_to for wp in gov.work_packages] == ["owner-1", "vendor-2", "vendor-1"]
        assert [r.specialty for r in gov.roles] == ["civil", "systems", "stations"]
        assert gov.liability_structure.type == "Joint and Several"

    def test_contract_service_delegates_by_kind(self):
        store = load_sample_store()
        contracts = ContractService(store, clock=lambda: FIXED_NOW)
        result = contracts.create_from_proposal("prop-jv-tower")
        assert result.success, result.errors
        assert result.contract.contract_type == "JV_CONTRACT"
        assert result.requires_consent


    def test_cash_default_warns_without_any_terms(self):
        result = _service().generate_jv_contract("prop-jv-tower")
        assert result.success, result.errors
        assert result.contract.payment_terms.mode == "CASH"
        assert any("defaulted to CASH" in w for w in result.warnings)

    def test_requested_version_differs_from_accepted(self, caplog):
        result = _service().create_multi_party_contract("prop-jv-tower", _parties(60, 40), version=1)
        assert result.success, result.errors
        assert result.contract.source_proposal_version == 1
        assert any("v2 is the mutually accepted version" in w for w in result.warnings)
        assert "not accepted v2" in caplog.text


class TestExtractParties:
    def test_declared_applicant_share_kept(self):
        store = load_sample_store()
        service = _service(store)
        opp = store.get_opportunity("opp-spv-port")
        store.put_application(CollaborationApplication(
            id="app-spv", opportunity_id=opp.id, applicant_id="vendor-1",
            status="approved", proposed_share=20,
        ))
        parties = service.extract_parties_from_opportunity(opp, store.get_proposal("prop-spv-port"))
        # owner and bidder split what the applicant left
        assert [(p.party_id, p.share) for p in parties] == [
            ("owner-2", 40.0), ("vendor-2", 40.0), ("vendor-1", 20.0),
        ]

    def test_declared_shares_flow_into_contract(self):
        store = load_sample_store()
        service = _service(store)
        store.put_application(CollaborationApplication(
            id="app-spv", opportunity_id="opp-spv-port", applicant_id="vendor-1",
            status="approved", proposed_share=20,
        ))
        result = service.generate_spv_contract("prop-spv-port")
        assert result.success, result.errors
        assert [p.share for p in result.contract.parties] == [40.0, 40.0, 20.0]

    def test_over_declared_shares_split_equally(self, caplog):
        store = load_sample_store()
        service = _service(store)
        opp = store.get_opportunity("opp-spv-port")
        for app_id, applicant, share in (("app-spv-a", "vendor-1", 60), ("app-spv-b", "vendor-3", 50)):
            store.put_application(CollaborationApplication(
                id=app_id, opportunity_id=opp.id, applicant_id=applicant,
                status="approved", proposed_share=share,
            ))
        parties = service.extract_parties_from_opportunity(opp, store.get_proposal("prop-spv-port"))
        assert [p.share for p in parties] == [25.0, 25.0, 25.0, 25.0]
        assert "splitting equally" in caplog.text

    def test_bidder_deduplicated_with_applicant(self):
        store = load_sample_store()
        service = _service(store)
        opp = store.get_opportunity("opp-consortium-metro")
        store.put_application(CollaborationApplication(
            id="app-dup", opportunity_id=opp.id, applicant_id="vendor-2", status="approved",
        ))
        parties = service.extract_parties_from_opportunity(
            opp, store.get_proposal("prop-consortium-metro"),
        )
        assert [p.party_id for p in parties] == ["owner-1", "vendor-2", "vendor-1"]

    def test_pending_applicants_excluded(self):
        store = load_sample_store()
        opp = store.get_opportunity("opp-consortium-metro")
        parties = _service(store).extract_parties_from_opportunity(
            opp, store.get_proposal("prop-consortium-metro"),
        )
        assert "vendor-3" not in [p.party_id for p in parties]


class TestConsent:
    def test_sent_only_after_last_consent(self):
        service = _service()
        c = _consortium(service)

        first = service.record_party_consent(c.id, "owner-1")
        assert first.contract.status == "DRAFT"
        assert first.all_consented is False
        second = service.record_party_consent(c.id, "vendor-2")
        assert second.contract.status == "DRAFT"
        third = service.record_party_consent(c.id, "vendor-1")
        assert third.all_consented is True
        assert third.contract.status == "SENT"
        assert third.contract.sent_at == FIXED_NOW

    def test_consent_is_idempotent(self):
        service = _service()
        c = _consortium(service)
        service.record_party_consent(c.id, "owner-1")
        again = service.record_party_consent(c.id, "owner-1")
        assert again.success
        assert again.contract.party("owner-1").consent_status == "CONSENTED"
        assert again.contract.status == "DRAFT"

    def test_rejection_holds_draft(self):
        service = _service()
        c = _consortium(service)
        rejected = service.record_party_rejection(c.id, "vendor-2", reason="Share too low")
        assert rejected.rejected_parties == ["vendor-2"]
        assert rejected.contract.party("vendor-2").rejection_reason == "Share too low"

        service.record_party_consent(c.id, "owner-1")
        last = service.record_party_consent(c.id, "vendor-1")
        assert last.contract.status == "DRAFT"
        assert last.all_consented is False
        assert last.rejected_parties == ["vendor-2"]

    def test_rejected_party_cannot_consent(self):
        service = _service()
        c = _consortium(service)
        service.record_party_rejection(c.id, "vendor-2")
        assert service.record_party_consent(c.id, "vendor-2").code == "PRECONDITION_FAILED"

    def test_unknown_party(self):
        service = _service()
        c = _consortium(service)
        assert service.record_party_consent(c.id, "stranger").code == "NOT_FOUND"

    def test_missing_contract(self):
        assert _service().record_party_consent("nope", "owner-1").code == "NOT_FOUND"

    def test_single_party_contract(self):
        store = load_sample_store()
        single = ContractService(store).create_from_proposal("prop-ring-road").contract
        assert _service(store).record_party_consent(single.id, "owner-1").code == "PRECONDITION_FAILED"

    def test_cannot_send_without_consent(self):
        store = load_sample_store()
        c = _consortium(_service(store))
        result = ContractService(store).send_contract(c.id)
        assert result.code == "PRECONDITION_FAILED"

    def test_sign_after_consent(self):
        store = load_sample_store()
        service = _service(store)
        contracts = ContractService(store, multi_party=service, clock=lambda: FIXED_NOW)
        c = _consortium(service)
        assert contracts.sign_contract(c.id, "owner-1").code == "STATE_TRANSITION_INVALID"
        for party in ("owner-1", "vendor-2", "vendor-1"):
            service.record_party_consent(c.id, party)
        signed = contracts.sign_contract(c.id, "vendor-2").contract
        assert signed.status == "SIGNED"
        assert signed.signed_by == "vendor-2"

    def test_concurrent_consents(self):
        store = load_sample_store()
        service = _service(store)
        c = _consortium(service)
        barrier = threading.Barrier(3)
        results = []

        def consent(party_id: str) -> None:
            barrier.wait()
            results.append(service.record_party_consent(c.id, party_id))

        threads = [
            threading.Thread(target=consent, args=(pid,))
            for pid in ("owner-1", "vendor-2", "vendor-1")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(r.success for r in results)
        stored = store.get_contract(c.id)
        assert stored.status == "SENT"
        assert stored.all_consented
        assert sum(1 for r in results if r.all_consented) == 1
