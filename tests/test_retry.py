"""Tests for retry backoff and position sampling."""

import asyncio

import pytest

from table_checkin.exceptions import (
    LocationTimeout,
    NetworkError,
    OutOfZone,
    PermissionDenied,
    PositionUnavailable,
)
from table_checkin.services.geo.device import DevicePositionSampler
from table_checkin.services.geo.zones import ZoneValidator, is_transient_network_error
from table_checkin.services.retry import RetryPolicy

from tests.conftest import coord_at, north_of_center


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class Flaky:
    """Fails with the queued errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryPolicy:
    """Linear backoff."""

    def test_delay_grows_linearly(self):
        policy = RetryPolicy(max_attempts=3, delay_seconds=2.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        sleep = RecordingSleep()
        policy = RetryPolicy(max_attempts=3, delay_seconds=2.0, sleep=sleep)
        operation = Flaky([PositionUnavailable(), LocationTimeout()])

        result = await policy.run(operation, retry_on=lambda e: True)

        assert result == "ok"
        assert operation.calls == 3
        assert policy.attempts == 3
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(self):
        sleep = RecordingSleep()
        policy = RetryPolicy(max_attempts=3, delay_seconds=2.0, sleep=sleep)
        operation = Flaky([PermissionDenied()])

        with pytest.raises(PermissionDenied):
            await policy.run(operation, retry_on=lambda e: isinstance(e, PositionUnavailable))

        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleep = RecordingSleep()
        policy = RetryPolicy(max_attempts=3, delay_seconds=1.0, sleep=sleep)
        operation = Flaky([PositionUnavailable("1"), PositionUnavailable("2"), PositionUnavailable("3")])

        with pytest.raises(PositionUnavailable) as exc_info:
            await policy.run(operation, retry_on=lambda e: True)

        assert exc_info.value.message == "3"
        assert operation.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_attempts_reset_between_runs(self):
        policy = RetryPolicy(max_attempts=3, delay_seconds=0.0, sleep=RecordingSleep())
        await policy.run(Flaky([PositionUnavailable()]), retry_on=lambda e: True)
        await policy.run(Flaky([]), retry_on=lambda e: True)
        assert policy.attempts == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_count_attempts_separately(self):
        async def yielding_sleep(delay: float) -> None:
            await asyncio.sleep(0)

        policy = RetryPolicy(max_attempts=3, delay_seconds=0.0, sleep=yielding_sleep)
        first = Flaky([PositionUnavailable()] * 5)
        second = Flaky([PositionUnavailable()] * 5)

        async def started_later():
            await asyncio.sleep(0)
            return await policy.run(second, retry_on=lambda e: True)

        results = await asyncio.gather(
            policy.run(first, retry_on=lambda e: True),
            started_later(),
            return_exceptions=True,
        )

        assert all(isinstance(r, PositionUnavailable) for r in results)
        assert first.calls == 3
        assert second.calls == 3


class TestTransientNetworkErrors:

    def test_classification(self):
        assert is_transient_network_error(NetworkError("down"))
        assert is_transient_network_error(NetworkError("oops", status_code=502))
        assert not is_transient_network_error(NetworkError("bad", status_code=400))
        assert not is_transient_network_error(ValueError("x"))


class TestZoneValidator:

    @pytest.mark.asyncio
    async def test_ensure_inside(self, venue):
        result = await ZoneValidator(venue).ensure_inside(coord_at(15.0))
        assert result.zone.name == "Main Hall"

    @pytest.mark.asyncio
    async def test_ensure_inside_raises_out_of_zone(self, venue):
        far = coord_at(0.0).model_copy(update={"latitude": north_of_center(400.0)})
        with pytest.raises(OutOfZone) as exc_info:
            await ZoneValidator(venue).ensure_inside(far)
        assert "outside the cafe zone" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, venue):
        original = venue.validate_zone
        failures = [NetworkError("down")]

        async def flaky_validate(coord):
            if failures:
                raise failures.pop(0)
            return await original(coord)

        venue.validate_zone = flaky_validate
        validator = ZoneValidator(venue, retry=RetryPolicy(3, 1.0, sleep=RecordingSleep()))
        result = await validator.validate(coord_at(15.0))
        assert result.is_valid


async def wait_for_request(sampler: DevicePositionSampler) -> None:
    while not sampler.has_pending_request:
        await asyncio.sleep(0)


class TestDevicePositionSampler:
    """Host-fed position source."""

    @pytest.mark.asyncio
    async def test_reported_position_completes_sample(self):
        sampler = DevicePositionSampler(timeout_seconds=5)
        task = asyncio.create_task(sampler.sample())
        await wait_for_request(sampler)

        coord = coord_at(3.0)
        assert sampler.report_position(coord) is True
        assert await task == coord
        assert not sampler.has_pending_request

    @pytest.mark.parametrize("code, error", [
        (1, PermissionDenied),
        (2, PositionUnavailable),
        (3, LocationTimeout),
    ])
    @pytest.mark.asyncio
    async def test_error_codes_map_to_typed_errors(self, code, error):
        sampler = DevicePositionSampler(timeout_seconds=5)
        task = asyncio.create_task(sampler.sample())
        await wait_for_request(sampler)

        assert sampler.report_error(code) is True
        with pytest.raises(error):
            await task

    def test_report_without_request_is_ignored(self):
        sampler = DevicePositionSampler()
        assert sampler.report_position(coord_at(0.0)) is False
        assert sampler.report_error(2) is False

    @pytest.mark.asyncio
    async def test_silent_host_times_out(self):
        sampler = DevicePositionSampler(timeout_seconds=0.01)
        with pytest.raises(LocationTimeout):
            await sampler.sample()
        assert not sampler.has_pending_request

    @pytest.mark.asyncio
    async def test_unavailable_is_retried_with_policy(self):
        sleep = RecordingSleep()
        sampler = DevicePositionSampler(timeout_seconds=5, retry=RetryPolicy(3, 2.0, sleep=sleep))
        task = asyncio.create_task(sampler.sample())

        await wait_for_request(sampler)
        sampler.report_error(2)
        await asyncio.sleep(0)
        await wait_for_request(sampler)
        sampler.report_position(coord_at(1.0))

        assert (await task).latitude == pytest.approx(north_of_center(1.0))
        assert sleep.delays == [2.0]
