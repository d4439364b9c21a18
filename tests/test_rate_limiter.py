from conftest import API, FakeResponse, FakeSession, content_response, tree_response

from github_scanner.inspector import RepositoryInspector
from github_scanner.rate_limiter import RateLimiter


def limited(clock, remaining, reset_in):
    return {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(int(clock.now + reset_in)),
    }


def test_exhausted_quota_waits_until_reset(clock, rate_limiter):
    response = FakeResponse({}, headers=limited(clock, remaining=1, reset_in=5))

    waited = rate_limiter.throttle(response)

    assert waited == 5
    assert sum(clock.sleeps) == 5


def test_plenty_of_quota_does_not_wait(clock, rate_limiter):
    response = FakeResponse({}, headers=limited(clock, remaining=50, reset_in=5))

    assert rate_limiter.throttle(response) == 0
    assert clock.sleeps == []


def test_reset_in_the_past_does_not_wait(clock, rate_limiter):
    response = FakeResponse({}, headers=limited(clock, remaining=0, reset_in=-30))

    assert rate_limiter.throttle(response) == 0
    assert clock.sleeps == []


def test_missing_or_garbage_headers_never_block(clock, rate_limiter):
    for headers in ({}, {"X-RateLimit-Remaining": "0"}, {"X-RateLimit-Remaining": "x", "X-RateLimit-Reset": "y"}):
        assert rate_limiter.throttle(FakeResponse({}, headers=headers)) == 0
    assert clock.sleeps == []


def test_long_waits_are_chunked_for_progress(clock, rate_limiter, caplog):
    response = FakeResponse({}, headers=limited(clock, remaining=0, reset_in=150))

    with caplog.at_level("INFO"):
        rate_limiter.throttle(response)

    assert clock.sleeps == [60, 60, 30]
    assert sum("Still waiting" in message for message in caplog.messages) == 2


def test_next_call_waits_for_reset_window(clock):
    limiter = RateLimiter(clock=clock.time, sleep=clock.sleep)
    tree = tree_response(["src/a.rs"])
    tree.headers = limited(clock, remaining=1, reset_in=5)
    session = FakeSession({
        f"{API}/repos/acme/widgets/git/trees/HEAD": tree,
        f"{API}/repos/acme/widgets/contents/src/a.rs": content_response("src/a.rs", "fn main() {}"),
    }, clock=clock)
    inspector = RepositoryInspector(rate_limiter=limiter, session=session)

    inspector.scan_repository("acme", "widgets", ["delegate_account"], [".rs"], 10)

    first, second = session.calls
    assert second["time"] - first["time"] >= 5
