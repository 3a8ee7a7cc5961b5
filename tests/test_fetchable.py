import pytest

from impactmining.errors import AuthRequired, BackendError, NotFound
from impactmining.fetchable import ErrorKind, Failed, Fetchable, Idle, Loaded, Loading


def test_starts_idle():
    f = Fetchable("projects")
    assert isinstance(f.state, Idle)
    assert f.value is None
    assert f.value_or([]) == []


def test_begin_then_settle():
    f = Fetchable("projects")
    token = f.begin("all")
    assert isinstance(f.state, Loading)
    assert f.loading
    assert f.settle(token, [1, 2])
    assert isinstance(f.state, Loaded)
    assert f.value == [1, 2]


def test_stale_results_are_dropped():
    f = Fetchable("project")
    first = f.begin("p1")
    second = f.begin("p2")
    assert not f.settle(first, "stale")
    assert f.loading
    assert f.settle(second, "fresh")
    assert not f.fail(first, BackendError("late failure"))
    assert f.value == "fresh"


@pytest.mark.parametrize(
    "error, kind",
    [
        (BackendError("boom"), ErrorKind.BACKEND),
        (NotFound("Project not found"), ErrorKind.NOT_FOUND),
        (AuthRequired("sign in"), ErrorKind.AUTH),
    ],
)
def test_fail_classifies_error(error, kind):
    f = Fetchable("x")
    f.fail(f.begin(), error)
    assert isinstance(f.state, Failed)
    assert f.state.kind is kind
    assert f.failed
    assert f.not_found is (kind is ErrorKind.NOT_FOUND)


def test_load_catches_app_errors():
    def loader():
        raise BackendError("network down")

    f = Fetchable("stats").load(loader)
    assert f.failed
    assert f.value_or("placeholder") == "placeholder"


def test_load_does_not_swallow_programming_errors():
    def loader():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        Fetchable("stats").load(loader)


def test_fetch_failure_is_logged(caplog):
    def loader():
        raise BackendError("timeout")

    Fetchable("stories").load(loader)
    assert "Error fetching stories" in caplog.text
