"""Tests for the in-memory entity store."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from suitability_backend.database import DuplicateUsernameError, MemStorage, seed_sample_data
from suitability_backend.models import BreachStatus, utcnow


def _portfolio(user_id, **overrides):
    data = {
        "userId": user_id,
        "name": "Test Fund",
        "type": "ETF Portfolio",
        "value": 1000.0,
        "performance": 2.5,
        "riskLevel": "High",
    }
    data.update(overrides)
    return data


def _breach(portfolio_id, **overrides):
    data = {
        "portfolioId": portfolio_id,
        "monitoringFieldId": "field-1",
        "breachCondition": "Drift > 5%",
        "breachValue": 6.1,
    }
    data.update(overrides)
    return data


# =============================================================================
# Seed Data
# =============================================================================


class TestSeedData:
    """The demo advisor owns every sample record."""

    def test_seed_shape(self, store, demo_user):
        assert demo_user is not None
        assert demo_user.name == "John Smith"
        assert len(store.get_portfolios_by_user_id(demo_user.id)) == 3
        assert len(store.get_monitoring_fields_by_user_id(demo_user.id)) == 3
        assert len(store.get_suitability_rules_by_user_id(demo_user.id)) == 2
        assert len(store.get_goals_by_user_id(demo_user.id)) == 1
        assert store.get_atrq_result_by_user_id(demo_user.id) is not None

    def test_seed_breaches(self, store, demo_user):
        breaches = store.get_portfolio_breaches_by_user_id(demo_user.id)
        statuses = sorted(b.status for b in breaches)
        assert statuses == sorted([
            BreachStatus.PENDING,
            BreachStatus.ACCEPT_AND_CHANGE,
            BreachStatus.REJECT,
        ])
        for breach in breaches:
            assert (breach.resolvedAt is None) == (breach.status == BreachStatus.PENDING)

    def test_first_user_is_demo_user(self, store, demo_user):
        assert store.get_first_user().id == demo_user.id


# =============================================================================
# Users
# =============================================================================


class TestUsers:

    def test_create_user(self, empty_store):
        user = empty_store.create_user({"username": "jane", "password": "pw", "name": "Jane"})
        assert user.id
        assert empty_store.get_user(user.id).username == "jane"
        assert empty_store.get_user_by_username("jane").id == user.id

    def test_duplicate_username_rejected(self, empty_store):
        empty_store.create_user({"username": "jane", "password": "pw", "name": "Jane"})
        with pytest.raises(DuplicateUsernameError):
            empty_store.create_user({"username": "jane", "password": "other", "name": "Jane Two"})
        assert len(empty_store.users) == 1

    def test_missing_user(self, empty_store):
        assert empty_store.get_user("nope") is None
        assert empty_store.get_first_user() is None

    def test_update_user_merges_changes(self, empty_store):
        user = empty_store.create_user({"username": "jane", "password": "pw", "name": "Jane"})
        updated = empty_store.update_user(user.id, {"username": "janet", "id": "hijack"})

        assert updated.id == user.id
        assert updated.username == "janet"
        assert updated.name == "Jane"
        assert empty_store.get_user_by_username("janet").id == user.id
        assert empty_store.get_user_by_username("jane") is None

    def test_update_user_keeps_own_username(self, empty_store):
        user = empty_store.create_user({"username": "jane", "password": "pw", "name": "Jane"})
        updated = empty_store.update_user(user.id, {"username": "jane", "name": "Jane Doe"})
        assert updated.name == "Jane Doe"

    def test_update_user_rejects_taken_username(self, empty_store):
        empty_store.create_user({"username": "jane", "password": "pw", "name": "Jane"})
        other = empty_store.create_user({"username": "john", "password": "pw", "name": "John"})
        with pytest.raises(DuplicateUsernameError):
            empty_store.update_user(other.id, {"username": "jane"})
        assert empty_store.get_user(other.id).username == "john"

    def test_update_missing_user(self, empty_store):
        assert empty_store.update_user("missing", {"name": "Ghost"}) is None

    def test_delete_user(self, store, demo_user):
        assert store.delete_user(demo_user.id) is True
        assert store.get_user(demo_user.id) is None
        assert store.delete_user(demo_user.id) is False
        assert store.get_goals_by_user_id(demo_user.id) != []


# =============================================================================
# Portfolios
# =============================================================================


class TestPortfolios:

    def test_create_assigns_fresh_id_and_timestamp(self, store, demo_user):
        existing = {p.id for p in store.portfolios.all()}
        before = utcnow()
        portfolio = store.create_portfolio(_portfolio(demo_user.id))
        after = utcnow()

        assert portfolio.id not in existing
        assert before <= portfolio.lastUpdated <= after
        assert store.get_portfolio(portfolio.id) == portfolio

    def test_ids_are_unique(self, empty_store):
        ids = {empty_store.create_portfolio(_portfolio("u1")).id for _ in range(50)}
        assert len(ids) == 50

    def test_list_keeps_insertion_order(self, empty_store):
        names = ["A", "B", "C"]
        for name in names:
            empty_store.create_portfolio(_portfolio("u1", name=name))
        empty_store.create_portfolio(_portfolio("u2", name="Other"))

        assert [p.name for p in empty_store.get_portfolios_by_user_id("u1")] == names
        assert empty_store.get_portfolios_by_user_id("nobody") == []

    def test_update_merges_and_refreshes_timestamp(self, empty_store):
        portfolio = empty_store.create_portfolio(_portfolio("u1"))
        updated = empty_store.update_portfolio(portfolio.id, {"value": 2000.0})

        assert updated.value == 2000.0
        assert updated.name == portfolio.name
        assert updated.lastUpdated >= portfolio.lastUpdated

    def test_update_cannot_change_id(self, empty_store):
        portfolio = empty_store.create_portfolio(_portfolio("u1"))
        updated = empty_store.update_portfolio(portfolio.id, {"id": "hijack", "name": "Renamed"})
        assert updated.id == portfolio.id
        assert empty_store.get_portfolio("hijack") is None

    def test_update_missing(self, empty_store):
        assert empty_store.update_portfolio("missing", {"value": 1.0}) is None

    def test_delete_does_not_cascade(self, store, demo_user):
        breach = store.get_portfolio_breaches_by_user_id(demo_user.id)[0]
        assert store.delete_portfolio(breach.portfolioId) is True
        assert store.get_portfolio(breach.portfolioId) is None
        assert store.get_portfolio_breach(breach.id) is not None
        assert len(store.get_monitoring_fields_by_user_id(demo_user.id)) == 3

    def test_returned_records_are_copies(self, empty_store):
        portfolio = empty_store.create_portfolio(_portfolio("u1"))
        portfolio.name = "Mutated"
        assert empty_store.get_portfolio(portfolio.id).name == "Test Fund"

    def test_negative_value_rejected_on_create(self, empty_store):
        with pytest.raises(ValidationError):
            empty_store.create_portfolio(_portfolio("u1", value=-1))
        assert len(empty_store.portfolios) == 0

    def test_negative_value_rejected_on_update(self, empty_store):
        portfolio = empty_store.create_portfolio(_portfolio("u1"))
        with pytest.raises(ValidationError):
            empty_store.update_portfolio(portfolio.id, {"value": -5})
        assert empty_store.get_portfolio(portfolio.id).value == portfolio.value

    def test_zero_value_allowed(self, empty_store):
        assert empty_store.create_portfolio(_portfolio("u1", value=0)).value == 0


# =============================================================================
# Goals & ATRQ
# =============================================================================


class TestGoalsAndAtrq:

    def test_update_goal_for_user(self, store, demo_user):
        goal = store.update_goal_for_user(demo_user.id, {"targetProgress": 90.0})
        assert goal.targetProgress == 90.0
        assert goal.monthlyIncome == 18750.0

    def test_update_goal_for_unknown_user(self, store):
        assert store.update_goal_for_user("nobody", {"targetProgress": 1.0}) is None

    def test_goal_lookup_by_id(self, store, demo_user):
        goal = store.get_goals_by_user_id(demo_user.id)[0]
        assert store.get_goal(goal.id) == goal
        assert store.get_goal("missing") is None

    def test_goal_create_update_delete(self, empty_store):
        goal = empty_store.create_goal({
            "userId": "u1",
            "totalAssets": 100000.0,
            "targetProgress": 40.0,
            "monthlyIncome": 2500.0,
            "riskScore": 5.0,
            "assetsChange": 1.5,
            "incomeChange": 0.5,
        })
        assert goal.id
        assert empty_store.get_goals_by_user_id("u1") == [goal]

        updated = empty_store.update_goal(goal.id, {"targetProgress": 55.0, "id": "hijack"})
        assert updated.id == goal.id
        assert updated.targetProgress == 55.0
        assert updated.totalAssets == 100000.0
        assert empty_store.update_goal("missing", {"targetProgress": 1.0}) is None

        assert empty_store.delete_goal(goal.id) is True
        assert empty_store.get_goal(goal.id) is None
        assert empty_store.delete_goal(goal.id) is False

    def test_atrq_lookup_and_delete_by_id(self, store, demo_user):
        result = store.get_atrq_result_by_user_id(demo_user.id)
        assert store.get_atrq_result(result.id) == result
        assert store.get_atrq_result("missing") is None

        assert store.delete_atrq_result(result.id) is True
        assert store.get_atrq_result_by_user_id(demo_user.id) is None
        assert store.delete_atrq_result(result.id) is False

    def test_create_atrq_sets_timestamp(self, empty_store):
        result = empty_store.create_atrq_result({
            "userId": "u1",
            "overallScore": 5.0,
            "riskProfile": "Balanced",
            "timeHorizon": 5.0,
            "financialCapacity": 5.0,
            "lossTolerance": 5.0,
            "riskExperience": 5.0,
        })
        assert result.lastUpdated is not None
        assert empty_store.get_atrq_result_by_user_id("u1").id == result.id

    def test_update_atrq_refreshes_timestamp(self, store, demo_user):
        original = store.get_atrq_result_by_user_id(demo_user.id)
        store.atrq_results.replace(original.model_copy(update={"lastUpdated": utcnow() - timedelta(days=30)}))

        updated = store.update_atrq_result_for_user(demo_user.id, {"riskProfile": "Adventurous"})
        assert updated.riskProfile == "Adventurous"
        assert updated.lastUpdated > utcnow() - timedelta(minutes=1)


# =============================================================================
# Rules & Monitoring Fields
# =============================================================================


class TestRulesAndFields:

    def test_rule_defaults_to_active(self, empty_store):
        rule = empty_store.create_suitability_rule({
            "userId": "u1",
            "name": "Drift",
            "conditions": {"Drift": {"operator": ">", "value": 5}},
            "actions": {"alertLevel": "Warning", "message": "Check drift"},
        })
        assert rule.isActive is True

    def test_delete_missing_rule_is_idempotent(self, store, demo_user):
        rule = store.get_suitability_rules_by_user_id(demo_user.id)[0]
        assert store.delete_suitability_rule(rule.id) is True
        assert store.delete_suitability_rule(rule.id) is False
        assert store.delete_suitability_rule("never-existed") is False

    def test_field_defaults(self, empty_store):
        field = empty_store.create_monitoring_field({"userId": "u1", "fieldName": "Drift", "alertLevel": "Info"})
        assert field.isEnabled is True
        assert field.threshold is None

    def test_field_threshold_can_be_cleared(self, store, demo_user):
        field = store.get_monitoring_fields_by_user_id(demo_user.id)[0]
        updated = store.update_monitoring_field(field.id, {"threshold": None})
        assert updated.threshold is None
        assert updated.fieldName == field.fieldName


# =============================================================================
# Breaches
# =============================================================================


class TestBreaches:

    def test_create_starts_pending(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1"))
        assert breach.status == BreachStatus.PENDING
        assert breach.detectedAt is not None
        assert breach.resolvedAt is None

    def test_create_with_resolved_status_is_stamped(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1", status=BreachStatus.REJECT))
        assert breach.resolvedAt is not None

    def test_resolution_stamped_once(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1"))

        first = empty_store.set_breach_status(breach.id, BreachStatus.ACCEPT_WITHOUT_CHANGE)
        assert first.resolvedAt is not None

        second = empty_store.set_breach_status(breach.id, BreachStatus.REJECT)
        assert second.status == BreachStatus.REJECT
        assert second.resolvedAt == first.resolvedAt

    def test_back_to_pending_clears_resolution(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1"))
        empty_store.set_breach_status(breach.id, BreachStatus.REJECT)

        reopened = empty_store.set_breach_status(breach.id, BreachStatus.PENDING)
        assert reopened.resolvedAt is None

        resolved_again = empty_store.set_breach_status(breach.id, BreachStatus.ACCEPT_AND_CHANGE)
        assert resolved_again.resolvedAt is not None

    def test_update_without_status_keeps_resolution(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1"))
        resolved = empty_store.set_breach_status(breach.id, BreachStatus.REJECT)

        updated = empty_store.update_portfolio_breach(breach.id, {"breachValue": 9.9})
        assert updated.breachValue == 9.9
        assert updated.resolvedAt == resolved.resolvedAt

    def test_client_cannot_set_resolution_time(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1"))
        updated = empty_store.update_portfolio_breach(breach.id, {"resolvedAt": utcnow()})
        assert updated.resolvedAt is None

    def test_unrecognized_status_is_stored(self, empty_store):
        breach = empty_store.create_portfolio_breach(_breach("p1"))
        updated = empty_store.set_breach_status(breach.id, "Escalated")
        assert updated.status == "Escalated"
        assert updated.resolvedAt is not None

    def test_update_missing_breach(self, empty_store):
        assert empty_store.set_breach_status("missing", BreachStatus.REJECT) is None

    def test_breaches_by_user_follow_portfolio_ownership(self, empty_store):
        owned = [empty_store.create_portfolio(_portfolio("u1")) for _ in range(2)]
        other = empty_store.create_portfolio(_portfolio("u2"))

        mine = [empty_store.create_portfolio_breach(_breach(p.id)) for p in owned for _ in range(2)]
        empty_store.create_portfolio_breach(_breach(other.id))
        empty_store.create_portfolio_breach(_breach("orphan-portfolio"))

        result = empty_store.get_portfolio_breaches_by_user_id("u1")
        assert {b.id for b in result} == {b.id for b in mine}
        assert all(b.portfolioId in {p.id for p in owned} for b in result)
        assert empty_store.get_portfolio_breaches_by_user_id("nobody") == []

    def test_breaches_by_portfolio(self, store, demo_user):
        portfolio = store.get_portfolios_by_user_id(demo_user.id)[0]
        breaches = store.get_portfolio_breaches_by_portfolio_id(portfolio.id)
        assert len(breaches) == 1
        assert breaches[0].portfolioId == portfolio.id


class TestFreshStores:

    def test_stores_are_independent(self):
        first, second = MemStorage(), MemStorage()
        seed_sample_data(first)
        assert len(first.portfolios) == 3
        assert len(second.portfolios) == 0
