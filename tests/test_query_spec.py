import pytest
from pydantic import ValidationError

from db2lake.core.enums import Backoff
from db2lake.core.schemas import QuerySpec
from db2lake.runner.services.resume import resume_spec
from db2lake.runner.services.retry import RetryPolicy


def test_cursor_field_requires_valid_params_index():
    with pytest.raises(ValidationError) as e:
        QuerySpec(query="q", params=(0,), cursor_field="id")
    assert "cursor_params_index" in str(e.value)

    with pytest.raises(ValidationError):
        QuerySpec(query="q", params=(0,), cursor_field="id", cursor_params_index=1)

    with pytest.raises(ValidationError):
        QuerySpec(query="q", params=(), cursor_field="id", cursor_params_index=0)


def test_query_must_not_be_blank():
    with pytest.raises(ValidationError):
        QuerySpec(query="   ")


def test_query_spec_is_immutable():
    spec = QuerySpec(query="q", params=(1,))

    with pytest.raises(ValidationError):
        spec.query = "other"


def test_spec_without_cursor_is_valid():
    spec = QuerySpec(query="SELECT 1")

    assert spec.params == ()
    assert spec.cursor_field is None


def test_resume_spec_reseeds_cursor_param():
    spec = QuerySpec(
        query="SELECT * FROM t WHERE tenant = $1 AND id > $2",
        params=("acme", 0),
        cursor_field="id",
        cursor_params_index=1,
    )

    resumed = resume_spec(spec, {"id": 42, "name": "x"})

    assert resumed.params == ("acme", 42)
    assert resumed.query == spec.query
    assert spec.params == ("acme", 0)


def test_resume_spec_errors():
    no_cursor = QuerySpec(query="q")
    with pytest.raises(ValueError):
        resume_spec(no_cursor, {"id": 1})

    spec = QuerySpec(query="q", params=(0,), cursor_field="id", cursor_params_index=0)
    with pytest.raises(ValueError):
        resume_spec(spec, {"name": "x"})


def test_retry_policy_delays():
    fixed = RetryPolicy(max_retries=2, delay_seconds=1.5)
    assert fixed.max_attempts == 3
    assert [fixed.delay_for(a) for a in (1, 2, 3)] == [1.5, 1.5, 1.5]

    exp = RetryPolicy(delay_seconds=1.0, backoff="exponential", max_delay_seconds=5.0)
    assert exp.backoff is Backoff.EXPONENTIAL
    assert [exp.delay_for(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


def test_retry_policy_rejects_negative_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(delay_seconds=-0.1)
