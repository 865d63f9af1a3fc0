"""
Tests for the reset command issuer
"""
import asyncio


def run_reset(services):
    async def scenario():
        services.poller.start(first_tick_delay=3600)
        try:
            return await services.reset.issue_reset()
        finally:
            services.poller.stop()
    return asyncio.run(scenario())


class TestResetIssuer:

    def test_success_repolls_and_republishes(self, services, remote):
        remote.write("gas1", 320)
        remote.write("maxGas", 320)
        loading = []
        services.live.add_listener(lambda snap: loading.append(snap["resetLoading"]))

        assert run_reset(services) is True

        snap = remote.snapshot()
        assert snap["resetFlag"]["reset"] is True
        assert snap["status"]["alarmOn"] is False
        assert snap["maxGas"] == 0
        # status/alarmOn=false is now a real boolean, so it wins
        assert services.live.alarm.alarm_on is False
        assert services.live.alarm.source == "status"
        assert services.live.has_data is True
        assert loading[0] is True
        assert loading[-1] is False
        assert services.reset.in_progress is False

    def test_one_write_is_enough(self, services, remote):
        remote.fail_writes = {"resetFlag/reset", "maxGas"}
        assert run_reset(services) is True
        assert services.reset.last_result.failed == ["resetFlag/reset", "maxGas"]

    def test_all_writes_failing(self, services, remote):
        remote.fail_writes = {"resetFlag/reset", "maxGas", "status/alarmOn"}
        assert run_reset(services) is False
        assert services.live.reset_loading is False
        assert services.live.has_data is False

    def test_concurrent_reset_is_refused(self, services):
        async def scenario():
            services.poller.start(first_tick_delay=3600)
            first = asyncio.create_task(services.reset.issue_reset())
            await asyncio.sleep(0)
            second = await services.reset.issue_reset()
            ok = await first
            services.poller.stop()
            return ok, second

        ok, second = asyncio.run(scenario())
        assert ok is True
        assert second is False
