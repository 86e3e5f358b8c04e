import pytest

from private_pool.config import AssetSpec, ContributorPlan, WorkflowParams
from private_pool.models import Asset, format_amount


def test_default_round():
    params = WorkflowParams.default()

    assert [c.name for c in params.contributors] == ["Alice", "Bob", "Charlie"]
    assert [c.funding_amount for c in params.contributors] == [600, 400, 500]
    assert params.minimum_threshold == 100
    assert params.expected_contributors == 3
    assert params.asset == AssetSpec("TRV", 2, 1_000_000)


def test_default_accepts_overrides():
    params = WorkflowParams.default(minimum_threshold=300, expected_contributor_count=4)
    assert params.minimum_threshold == 300
    assert params.expected_contributors == 4


def test_contribution_amount_stays_out_of_repr():
    plan = ContributorPlan("Alice", funding_amount=600, contribution_amount=321)
    assert "321" not in repr(plan)
    assert "321" not in repr(WorkflowParams(contributors=[plan]))
    assert "321" not in repr(Asset("faucet", 321))


def test_contributor_without_contribution():
    plan = ContributorPlan("Dave", funding_amount=100)
    assert not plan.contributes


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "funding_amount": 10},
        {"name": "Alice", "funding_amount": 0},
        {"name": "Alice", "funding_amount": 10, "contribution_amount": 0},
        {"name": "Alice", "funding_amount": 10, "contribution_amount": 11},
    ],
)
def test_contributor_plan_validation(kwargs):
    with pytest.raises(ValueError):
        ContributorPlan(**kwargs)


@pytest.mark.parametrize(
    "funding,contribution",
    [(6.0, 3), (600, 3.0), (True, None), (600, True)],
)
def test_contributor_amounts_must_be_minor_units(funding, contribution):
    with pytest.raises(ValueError):
        ContributorPlan("Alice", funding_amount=funding, contribution_amount=contribution)


@pytest.mark.parametrize("threshold", [1.0, True])
def test_threshold_must_be_minor_units(threshold):
    with pytest.raises(ValueError):
        WorkflowParams.default(minimum_threshold=threshold)


def test_params_validation():
    alice = ContributorPlan("Alice", 600, 300)

    with pytest.raises(ValueError):
        WorkflowParams(contributors=[])
    with pytest.raises(ValueError):
        WorkflowParams(contributors=[alice, ContributorPlan("Alice", 100, 50)])
    with pytest.raises(ValueError):
        WorkflowParams(contributors=[alice], minimum_threshold=-1)
    with pytest.raises(ValueError):
        WorkflowParams(contributors=[alice], expected_contributor_count=0)
    with pytest.raises(ValueError):
        WorkflowParams(contributors=[alice], consume_attempts=0)
    with pytest.raises(ValueError):
        WorkflowParams(contributors=[alice], asset=AssetSpec(max_supply=500))


def test_asset_amounts_are_unsigned_integers():
    with pytest.raises(ValueError):
        Asset("faucet", -1)
    with pytest.raises(TypeError):
        Asset("faucet", 1.5)


@pytest.mark.parametrize("amount,decimals,expected", [(750, 2, "7.50"), (600, 2, "6.00"), (5, 0, "5")])
def test_format_amount(amount, decimals, expected):
    assert format_amount(amount, decimals) == expected
