"""
Tests for manifesto pledges.
"""

from dataclasses import replace

import pytest

from manifesto import (
    MANIFESTO_TEMPLATES, PolicyChange, apply_manifesto_violations, check_annual_growth_pledges,
    check_policy_for_violations, create_manifesto,
)
from state import create_initial_state


@pytest.fixture
def manifesto():
    return create_manifesto()


class TestPolicyChecks:

    def test_no_change_no_violations(self, manifesto):
        check = check_policy_for_violations(manifesto, PolicyChange())
        assert check.violated == ()
        assert check.warnings == []

    def test_tax_locks(self, manifesto):
        check = check_policy_for_violations(manifesto, PolicyChange(income_higher=1, vat=0.5))
        assert set(check.violated) == {"income-tax-lock", "vat-lock"}
        assert len(check.warnings) == 2

    def test_tax_cuts_allowed(self, manifesto):
        assert check_policy_for_violations(manifesto, PolicyChange(income_basic=-2, corporation=-5)).violated == ()

    def test_fiscal_rule_breach_only_warns(self, manifesto):
        check = check_policy_for_violations(manifesto, PolicyChange(fiscal_rule_breached=True))
        assert check.violated == ()
        assert check.warnings, "Breaching the rules is flagged but the pledge stands"

    def test_real_terms_nhs_cut(self, manifesto):
        assert "nhs-appointments" in check_policy_for_violations(manifesto, PolicyChange(nhs_real_cut=True)).violated

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            create_manifesto("no-such-manifesto")

    def test_every_template_has_a_vat_lock(self):
        for template_id, pledges in MANIFESTO_TEMPLATES.items():
            assert any(p.id == "vat-lock" for p in pledges), template_id


class TestViolations:

    def test_counted_once(self, manifesto):
        once = apply_manifesto_violations(manifesto, ["vat-lock"], turn=3)
        twice = apply_manifesto_violations(once, ["vat-lock"], turn=5)
        assert twice.total_violations == 1, "A broken pledge is not broken again"
        pledge = next(p for p in twice.pledges if p.id == "vat-lock")
        assert pledge.turn_violated == 3

    def test_broken_pledges_skipped_in_checks(self, manifesto):
        broken = apply_manifesto_violations(manifesto, ["vat-lock"], turn=1)
        assert check_policy_for_violations(broken, PolicyChange(vat=2)).violated == ()


class TestAnnualGrowthPledges:

    def test_real_growth_met(self):
        manifesto = create_manifesto("social-democratic")
        fiscal = create_initial_state().fiscal
        nhs = fiscal.spending.nhs
        grown = fiscal.spending.with_department("nhs", current=nhs.current + nhs.total * 0.06)
        assert check_annual_growth_pledges(manifesto, replace(fiscal, spending=grown), 2.2) == ()

    def test_flat_cash_misses(self):
        manifesto = create_manifesto("social-democratic")
        fiscal = create_initial_state().fiscal
        assert check_annual_growth_pledges(manifesto, fiscal, 2.2) == ("nhs-investment",)

    def test_no_start_snapshot(self):
        fiscal = replace(create_initial_state().fiscal, fiscal_year_start_spending=None)
        assert check_annual_growth_pledges(create_manifesto("social-democratic"), fiscal, 2.2) == ()
