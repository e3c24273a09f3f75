import asyncio

from shoplocate.domain.models import PermissionState
from shoplocate.errors import PermissionUnavailable
from shoplocate.location.permission import PermissionGate


class StubPermissionCapability:
    def __init__(self, status="prompt", grant=True, check_error=None, prompt_error=None):
        self.status = status
        self.grant = grant
        self.check_error = check_error
        self.prompt_error = prompt_error
        self.check_calls = 0
        self.prompt_calls = 0
        self.release: asyncio.Event | None = None

    async def check_permission(self):
        self.check_calls += 1
        if self.check_error:
            raise self.check_error
        return self.status

    async def request_permission(self):
        self.prompt_calls += 1
        if self.release is not None:
            await self.release.wait()
        if self.prompt_error:
            raise self.prompt_error
        self.status = "granted" if self.grant else "denied"
        return self.grant


def test_initial_state_is_unknown():
    gate = PermissionGate(StubPermissionCapability())
    assert gate.state is PermissionState.UNKNOWN


def test_check_reports_platform_state_without_prompting():
    cap = StubPermissionCapability(status="granted")
    gate = PermissionGate(cap)

    state = asyncio.run(gate.check())

    assert state is PermissionState.GRANTED
    assert gate.state is PermissionState.GRANTED
    assert cap.prompt_calls == 0


def test_check_failure_is_treated_as_denied():
    cap = StubPermissionCapability(check_error=RuntimeError("platform exploded"))
    gate = PermissionGate(cap)

    state = asyncio.run(gate.check())

    assert state is PermissionState.DENIED
    assert isinstance(gate.last_error, PermissionUnavailable)
    assert isinstance(gate.last_error.__cause__, RuntimeError)


def test_check_rejects_unexpected_platform_values():
    gate = PermissionGate(StubPermissionCapability(status="restricted"))
    assert asyncio.run(gate.check()) is PermissionState.DENIED


def test_request_after_grant_never_prompts_again():
    cap = StubPermissionCapability(status="prompt", grant=True)
    gate = PermissionGate(cap)

    async def main():
        first = await gate.request()
        second = await gate.request()
        return first, second

    assert asyncio.run(main()) == (True, True)
    assert cap.prompt_calls == 1
    assert gate.state is PermissionState.GRANTED


def test_request_when_denied_returns_false_without_prompting():
    cap = StubPermissionCapability(status="denied")
    gate = PermissionGate(cap)

    async def main():
        await gate.check()
        return await gate.request()

    assert asyncio.run(main()) is False
    assert cap.prompt_calls == 0


def test_refused_prompt_is_sticky_until_platform_reports_prompt_again():
    cap = StubPermissionCapability(status="prompt", grant=False)
    gate = PermissionGate(cap)

    async def main():
        refused = await gate.request()
        again = await gate.request()
        # User re-enabled the prompt from system settings.
        cap.status = "prompt"
        cap.grant = True
        await gate.check()
        after_recheck = await gate.request()
        return refused, again, after_recheck

    assert asyncio.run(main()) == (False, False, True)
    assert cap.prompt_calls == 2


def test_concurrent_requests_share_one_native_prompt():
    cap = StubPermissionCapability(status="prompt", grant=True)
    gate = PermissionGate(cap)

    async def main():
        cap.release = asyncio.Event()
        tasks = [asyncio.create_task(gate.request()) for _ in range(4)]
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert gate.prompting
        cap.release.set()
        return await asyncio.gather(*tasks)

    assert asyncio.run(main()) == [True, True, True, True]
    assert cap.prompt_calls == 1
    assert not gate.prompting


def test_prompt_failure_resolves_false():
    cap = StubPermissionCapability(status="prompt", prompt_error=OSError("prompt unavailable"))
    gate = PermissionGate(cap)

    assert asyncio.run(gate.request()) is False
    assert gate.state is PermissionState.DENIED
    assert isinstance(gate.last_error, PermissionUnavailable)


def test_permission_labels():
    assert PermissionState.GRANTED.label == "Location enabled"
    assert PermissionState.DENIED.label == "Location disabled"
    assert PermissionState.PROMPT.label == "Location permission needed"
    assert PermissionState.UNKNOWN.label == "Location permission needed"
