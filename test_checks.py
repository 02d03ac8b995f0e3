"""Catalog checks against a fake signal bus (no Azure dependency)."""
import pytest

from checks.base import BaseCheck, coverage_status, count_status, truthy
from checks.cost import AdvisorCostCheck, BudgetCheck, StoppedVmCheck
from checks.operations import InfrastructureAsCodeCheck, PolicyComplianceCheck
from checks.registry import CheckRegistry, load_builtin_checks
from checks.reliability import StorageRedundancyCheck, VmAvailabilityCheck
from checks.security import DefenderPlansCheck, OpenManagementPortsCheck
from engine.dispatcher import CheckDispatcher
from schemas.taxonomy import CheckStatus, Pillar
from signals.registry import SignalBus, set_shared_bus
from signals.types import SignalResult, SignalStatus, SignalUnavailableError

SUB = "00000000-0000-0000-0000-00000000abcd"


def _ok(items=None, raw=None):
    return lambda sub: SignalResult(signal_name="", status=SignalStatus.OK, items=items or [], raw=raw)


def _not_available(msg="Not enabled on this subscription"):
    return lambda sub: SignalResult(signal_name="", status=SignalStatus.NOT_AVAILABLE, error_msg=msg)


def _error(msg="403 Forbidden"):
    return lambda sub: SignalResult(signal_name="", status=SignalStatus.ERROR, error_msg=msg)


def _bus(**providers):
    """Provider keyword names use '__' for ':' (``cost__budgets`` → ``cost:budgets``)."""
    return SignalBus(providers={k.replace("__", ":"): v for k, v in providers.items()})


@pytest.fixture(autouse=True)
def _reset_shared_bus():
    yield
    set_shared_bus(None)


class TestHelpers:
    def test_coverage_status(self):
        assert coverage_status(0, 0) == CheckStatus.PASS
        assert coverage_status(10, 10) == CheckStatus.PASS
        assert coverage_status(8, 10) == CheckStatus.WARNING
        assert coverage_status(7, 10) == CheckStatus.FAIL
        assert coverage_status(5, 10, warn_at=0.5) == CheckStatus.WARNING

    def test_count_status(self):
        assert count_status(0) == CheckStatus.PASS
        assert count_status(3) == CheckStatus.WARNING
        assert count_status(6) == CheckStatus.FAIL

    def test_truthy(self):
        assert truthy("True") and truthy(True) and truthy("enabled")
        assert not truthy(None) and not truthy("false") and not truthy("")


class TestSignalStates:
    def test_error_signal_raises(self):
        check = BudgetCheck(_bus(cost__budgets=_error()))
        with pytest.raises(SignalUnavailableError, match="403 Forbidden"):
            check(SUB)

    def test_error_signal_becomes_error_row_through_dispatcher(self):
        reg = CheckRegistry()
        reg.register(BudgetCheck(_bus(cost__budgets=_error())).definition())
        [result] = CheckDispatcher(reg).run(SUB)
        assert result.status == "Error"
        assert "SignalUnavailableError" in result.message

    def test_not_available_signal_is_manual(self):
        result = BudgetCheck(_bus(cost__budgets=_not_available()))(SUB)
        assert result.status == "Manual"
        assert result.message == "Not enabled on this subscription"
        assert result.recommendation.startswith("### Create a subscription budget")

    def test_unknown_signal_raises(self):
        with pytest.raises(SignalUnavailableError, match="Unknown signal"):
            BudgetCheck(_bus())(SUB)

    def test_signals_are_cached_per_subscription(self):
        calls = []

        def provider(sub):
            calls.append(sub)
            return SignalResult(signal_name="", status=SignalStatus.OK, items=[])

        bus = _bus(resource_graph__vms=provider)
        VmAvailabilityCheck(bus)(SUB)
        StoppedVmCheck(bus)(SUB)
        VmAvailabilityCheck(bus)("other-sub")
        assert calls == [SUB, "other-sub"]

    def test_shared_bus_is_used_by_default(self):
        set_shared_bus(_bus(cost__budgets=_ok(raw={"budget_count": 1, "budgets_with_notifications": 1})))
        assert BudgetCheck()(SUB).status == "Pass"


class TestCatalogVerdicts:
    def test_budget_states(self):
        def run(raw):
            return BudgetCheck(_bus(cost__budgets=_ok(raw=raw)))(SUB)

        assert run({"budget_count": 0}).status == "Fail"
        assert run({"budget_count": 2, "budgets_with_notifications": 0}).status == "Warning"
        passed = run({"budget_count": 2, "budgets_with_notifications": 1})
        assert passed.status == "Pass"
        assert passed.recommendation == ""
        assert passed.check_id == "CO01"
        assert passed.pillar == Pillar.COST_OPTIMIZATION
        assert passed.title == BudgetCheck.title

    def test_vm_availability_abstains_without_vms(self):
        assert VmAvailabilityCheck(_bus(resource_graph__vms=_ok([])))(SUB) is None

    def test_vm_availability_lists_exposed_vms(self):
        vms = [
            {"id": "/vm/a", "zones": ["1"]},
            {"id": "/vm/b", "availabilitySet": "/as/1"},
            {"id": "/vm/c"},
        ]
        result = VmAvailabilityCheck(_bus(resource_graph__vms=_ok(vms)))(SUB)
        assert result.status == "Fail"
        assert result.affected_resources == ("/vm/c",)
        assert result.message == "2/3 VM(s) are zonal or in an availability set."

    def test_storage_redundancy(self):
        accounts = [
            {"id": "/sa/1", "sku": "Standard_LRS"},
            {"id": "/sa/2", "sku": "Standard_GZRS"},
            {"id": "/sa/3", "sku": "Standard_RAGRS"},
        ]
        result = StorageRedundancyCheck(_bus(resource_graph__storage_accounts=_ok(accounts)))(SUB)
        assert result.status == "Warning"
        assert result.affected_resources == ("/sa/1",)

    def test_defender_plans(self):
        plans = [
            {"name": "VirtualMachines", "tier": "Standard"},
            {"name": "StorageAccounts", "tier": "Free"},
            {"name": "KeyVaults", "tier": "Standard"},
        ]
        result = DefenderPlansCheck(_bus(defender__pricings=_ok(plans)))(SUB)
        assert result.status == "Warning"
        assert "Disabled: StorageAccounts." in result.message

    def test_open_management_ports(self):
        assert OpenManagementPortsCheck(_bus(resource_graph__nsg_open_management=_ok([])))(SUB).status == "Pass"
        rules = [{"id": "/nsg/1", "name": "nsg1", "ruleName": "allow-rdp", "port": "3389"}]
        result = OpenManagementPortsCheck(_bus(resource_graph__nsg_open_management=_ok(rules)))(SUB)
        assert result.status == "Fail"
        assert result.affected_resources == ("/nsg/1",)

    def test_advisor_cost_savings(self):
        recs = [
            {"category": "Cost", "resourceId": "/vm/a", "annualSavings": 8000, "currency": "EUR"},
            {"category": "Cost", "resourceId": "/vm/b", "annualSavings": 4000, "currency": "EUR"},
            {"category": "Security", "resourceId": "/vm/c"},
        ]
        result = AdvisorCostCheck(_bus(advisor__recommendations=_ok(recs)))(SUB)
        assert result.status == "Fail"
        assert result.estimated_roi == "Estimated annual savings: 12,000 EUR"
        assert result.affected_resources == ("/vm/a", "/vm/b")

    def test_policy_compliance_thresholds(self):
        def run(pct):
            return PolicyComplianceCheck(
                _bus(policy__compliance_summary=_ok(raw={"compliance_percent": pct})))(SUB).status

        assert run(99) == "Pass"
        assert run(95) == "Pass"
        assert run(85) == "Warning"
        assert run(50) == "Fail"

    def test_infrastructure_as_code_is_manual(self):
        assert InfrastructureAsCodeCheck(_bus())(SUB).status == "Manual"

    def test_affected_resources_are_capped(self):
        vms = [{"id": f"/vm/{i}"} for i in range(80)]
        result = VmAvailabilityCheck(_bus(resource_graph__vms=_ok(vms)))(SUB)
        assert len(result.affected_resources) == 50


def test_every_builtin_check_has_metadata():
    reg, _ = load_builtin_checks()
    for d in reg.get_all():
        assert d.title, d.identifier
        assert d.documentation_url.startswith("https://"), d.identifier
        assert d.identifier[:2] in ("RE", "SE", "CO", "OE", "PE")


def test_builtin_catalog_is_isolated_from_signal_failures():
    """With every signal failing, a full scan still yields one row per non-abstaining check."""
    set_shared_bus(SignalBus(providers={}))
    reg, _ = load_builtin_checks()
    results = CheckDispatcher(reg, timeout=None).run(SUB)
    assert {r.status for r in results} <= {"Error", "Manual"}
    assert len(results) == len(reg)


class _AlwaysWarn(BaseCheck):
    identifier = "ZZ99"
    pillar = Pillar.PERFORMANCE_EFFICIENCY
    title = "Synthetic"
    remediation = "### Fix it"

    def evaluate(self, subscription_id):
        return self.result(subscription_id, CheckStatus.WARNING, "meh")


def test_base_check_definition():
    d = _AlwaysWarn(_bus()).definition()
    assert d.identifier == "ZZ99"
    assert d.pillar == Pillar.PERFORMANCE_EFFICIENCY
    result = d.probe(SUB)
    assert result.recommendation == "### Fix it"
    assert result.score == 60
