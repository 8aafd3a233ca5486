"""Unit tests for FlareSolverr core exceptions."""

import pytest

from src.app.services.flaresolverr.exceptions import (
    ChallengeNotSolvedError,
    FlareSolverrException,
    InvalidInputError,
    NotFoundError,
    ProviderError,
    UpstreamUnavailableError,
)


class TestHierarchy:
    """Every error is catchable through the base class."""

    @pytest.mark.parametrize(
        "exc_class",
        [UpstreamUnavailableError, ChallengeNotSolvedError, ProviderError, NotFoundError, InvalidInputError],
    )
    def test_subclasses_base(self, exc_class) -> None:
        assert issubclass(exc_class, FlareSolverrException)

    def test_provider_errors(self) -> None:
        assert issubclass(NotFoundError, ProviderError)
        assert issubclass(InvalidInputError, ProviderError)


class TestUpstreamUnavailableError:
    def test_fields_and_str(self) -> None:
        error = UpstreamUnavailableError(
            "FlareSolverr failed: timeout",
            url="https://example.test",
            command="request.get",
            status_code=200,
            proxy_status="error",
            proxy_message="timeout",
        )

        assert error.http_status == 502
        assert error.code == "BAD_GATEWAY"
        assert error.proxy_message == "timeout"
        assert str(error) == (
            "FlareSolverr failed: timeout | url=https://example.test | "
            "[command=request.get, status_code=200, proxy_status=error, proxy_message=timeout]"
        )

    def test_str_skips_missing_details(self) -> None:
        error = UpstreamUnavailableError("FlareSolverr unreachable", command="request.post")
        assert str(error) == "FlareSolverr unreachable | [command=request.post]"


class TestChallengeNotSolvedError:
    def test_to_dict(self) -> None:
        error = ChallengeNotSolvedError(
            "Anti-bot protection not bypassed",
            url="https://www.coleka.com/fr",
            site="coleka",
            challenge_type="ajax_verification",
            response_snippet='{"success":false}',
        )

        data = error.to_dict()
        assert data["error"] == "ChallengeNotSolvedError"
        assert data["code"] == "CHALLENGE_NOT_SOLVED"
        assert data["details"] == {"site": "coleka", "challenge_type": "ajax_verification"}
        assert error.response_snippet == '{"success":false}'
        assert error.outcome is None


class TestRetryability:
    def test_transport_and_challenge_errors_are_retryable(self) -> None:
        assert UpstreamUnavailableError("x").is_retryable is True
        assert ChallengeNotSolvedError("x").is_retryable is True

    def test_input_errors_are_not(self) -> None:
        assert NotFoundError("x").is_retryable is False
        assert InvalidInputError("x").is_retryable is False
        assert NotFoundError("x").http_status == 404
        assert InvalidInputError("x").http_status == 400
