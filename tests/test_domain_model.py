"""Unit tests for the deterministic domain model."""

from src.marketplace.domain_model import (
    CATEGORY_MAPPING,
    EXPERIENCE_LEVELS,
    buyer_party_type,
    canonical_opportunity_kind,
    canonical_proposal_status,
    category_matches,
    is_multi_party_kind,
    level_rank,
    multi_party_contract_type,
    payment_compatibility,
    primary_service_category,
    provider_party_type,
    scope_type_for,
    single_party_contract_type,
    skill_matches,
)
from src.marketplace.models import Opportunity, Proposal


class TestCategoryMapping:
    def test_category_count(self):
        assert set(CATEGORY_MAPPING) == {"infrastructure", "residential", "commercial", "industrial"}

    def test_mapped_service_category(self):
        assert category_matches("Infrastructure", "Engineering")
        assert category_matches("industrial", "environmental")

    def test_unmapped_service_category(self):
        assert not category_matches("Infrastructure", "legal")

    def test_missing_category(self):
        assert not category_matches(None, "engineering")
        assert not category_matches("Infrastructure", "")

    def test_primary_category(self):
        assert primary_service_category("Infrastructure") == "engineering"
        assert primary_service_category("Commercial") == "design"
        assert primary_service_category("Agriculture") is None


class TestSkillMatching:
    def test_case_insensitive(self):
        assert skill_matches("HSE", "hse")

    def test_substring_either_way(self):
        assert skill_matches("site-management", "management")
        assert skill_matches("civil", "civil engineering")

    def test_blank_never_matches(self):
        assert not skill_matches("", "hse")
        assert not skill_matches("hse", "  ")


class TestExperienceLadder:
    def test_ordering(self):
        assert EXPERIENCE_LEVELS["junior"] < EXPERIENCE_LEVELS["intermediate"]
        assert EXPERIENCE_LEVELS["senior"] < EXPERIENCE_LEVELS["expert"]

    def test_default_intermediate(self):
        assert level_rank(None) == 2
        assert level_rank("unknown") == 2


class TestAliases:
    def test_awarded_is_final_accepted(self):
        assert canonical_proposal_status("AWARDED") == "FINAL_ACCEPTED"
        assert canonical_proposal_status("awarded") == "FINAL_ACCEPTED"

    def test_other_status_unchanged(self):
        assert canonical_proposal_status("negotiation") == "NEGOTIATION"

    def test_proposal_model_applies_alias(self):
        p = Proposal(id="p", opportunity_id="o", owner_id="a", bidder_id="b", status="AWARDED")
        assert p.status == "FINAL_ACCEPTED"

    def test_kind_aliases(self):
        assert canonical_opportunity_kind("JV") == "JOINT_VENTURE"
        assert canonical_opportunity_kind("1.4") == "SPV"
        assert canonical_opportunity_kind("mega-project") == "MEGA_PROJECT"

    def test_opportunity_model_applies_alias(self):
        o = Opportunity(id="o", creator_id="u", kind="jv")
        assert o.kind == "JOINT_VENTURE"


class TestContractTyping:
    def test_multi_party_kinds(self):
        assert is_multi_party_kind("SPV")
        assert is_multi_party_kind("CONSORTIUM")
        assert not is_multi_party_kind("PROJECT")

    def test_multi_party_contract_types(self):
        assert multi_party_contract_type("JOINT_VENTURE") == "JV_CONTRACT"
        assert multi_party_contract_type("BULK_PURCHASE") is None

    def test_single_party_types(self):
        assert single_party_contract_type("PROJECT_BID", "PROJECT") == "PROJECT_CONTRACT"
        assert single_party_contract_type("PROJECT_BID", "MEGA_PROJECT") == "MEGA_PROJECT_CONTRACT"
        assert single_party_contract_type("SERVICE_OFFER", "SERVICE_REQUEST") == "SERVICE_CONTRACT"
        assert single_party_contract_type("ADVISORY_OFFER", "ADVISORY_REQUEST") == "ADVISORY_CONTRACT"

    def test_unsupported_pair(self):
        assert single_party_contract_type("SERVICE_OFFER", "MEGA_PROJECT") is None

    def test_scope_types(self):
        assert scope_type_for("MEGA_PROJECT") == "MEGA_PROJECT"
        assert scope_type_for("ADVISORY_REQUEST") == "SERVICE_REQUEST"
        assert scope_type_for("SPV") == "PROJECT"


class TestPartyTypes:
    def test_provider_roles(self):
        assert provider_party_type("vendor_corporate") == "VENDOR_CORPORATE"
        assert provider_party_type("skill_service_provider") == "SERVICE_PROVIDER"
        assert provider_party_type("sub_contractor") == "SUB_CONTRACTOR"

    def test_provider_default(self):
        assert provider_party_type(None) == "VENDOR_CORPORATE"
        assert provider_party_type("mystery", default="CONSULTANT") == "CONSULTANT"

    def test_buyer_roles(self):
        assert buyer_party_type("vendor_individual") == "VENDOR_INDIVIDUAL"
        assert buyer_party_type("beneficiary") == "BENEFICIARY"
        assert buyer_party_type("consultant") == "BENEFICIARY"
        assert buyer_party_type(None) == "BENEFICIARY"


class TestPaymentCompatibility:
    def test_aligned(self):
        assert "align" in payment_compatibility("CASH", "CASH")

    def test_hybrid_bridges(self):
        assert "hybrid" in payment_compatibility("BARTER", "HYBRID")

    def test_defaults_to_cash(self):
        assert "align" in payment_compatibility(None, None)
