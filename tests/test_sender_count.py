from __future__ import annotations

import json

import pytest

from mailcount.core.exceptions import InvalidCredentialsFormatError, ProviderApiError
from mailcount.services.credential_admin import CredentialAdminService
from mailcount.services.credential_source import CredentialSourceResolver
from mailcount.services.message_counter import MessageCountAggregator
from mailcount.services.sender_count import SenderCountCache, SenderCountService


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class StubSession:
    def __init__(self, sizes: list[int], error: Exception | None = None) -> None:
        self.sizes = sizes
        self.error = error
        self.calls = 0
        self.closed = False

    def list_messages(self, *, query: str, page_token: str | None, max_results: int) -> dict:
        if self.error is not None:
            raise self.error
        size = self.sizes[self.calls]
        self.calls += 1
        page: dict = {"messages": [{"id": str(index)} for index in range(size)]}
        if self.calls < len(self.sizes):
            page["nextPageToken"] = f"t{self.calls}"
        return page

    def __enter__(self) -> "StubSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True


class StubSessionFactory:
    def __init__(self, sizes: list[int], error: Exception | None = None) -> None:
        self.sizes = sizes
        self.error = error
        self.sessions: list[StubSession] = []

    async def open(self) -> StubSession:
        session = StubSession(self.sizes, self.error)
        self.sessions.append(session)
        return session


class StubController:
    def __init__(self) -> None:
        self.forget_calls = 0

    def forget(self) -> bool:
        self.forget_calls += 1
        return True


def _service(
    factory: StubSessionFactory, clock: FakeClock, ttl: float = 300
) -> SenderCountService:
    return SenderCountService(
        session_factory=factory,
        aggregator=MessageCountAggregator(),
        cache=SenderCountCache(ttl, clock=clock),
    )


@pytest.mark.asyncio
async def test_second_request_is_served_from_cache() -> None:
    factory = StubSessionFactory([500, 20])
    service = _service(factory, FakeClock())

    first = await service.count_from_sender("alerts@example.com")
    second = await service.count_from_sender("Alerts@Example.com ")

    assert (first.count, first.cached) == (520, False)
    assert (second.count, second.cached) == (520, True)
    assert len(factory.sessions) == 1
    assert factory.sessions[0].closed


@pytest.mark.asyncio
async def test_cache_entries_expire() -> None:
    clock = FakeClock()
    factory = StubSessionFactory([3])
    service = _service(factory, clock, ttl=60)

    await service.count_from_sender("alerts@example.com")
    clock.now += 61
    result = await service.count_from_sender("alerts@example.com")

    assert result.cached is False
    assert len(factory.sessions) == 2


@pytest.mark.asyncio
async def test_zero_ttl_disables_cache() -> None:
    factory = StubSessionFactory([3])
    service = _service(factory, FakeClock(), ttl=0)

    await service.count_from_sender("alerts@example.com")
    await service.count_from_sender("alerts@example.com")

    assert len(factory.sessions) == 2


@pytest.mark.asyncio
async def test_invalidate_cache_forces_recount() -> None:
    factory = StubSessionFactory([3])
    service = _service(factory, FakeClock())

    await service.count_from_sender("alerts@example.com")
    service.invalidate_cache()
    result = await service.count_from_sender("alerts@example.com")

    assert result.cached is False
    assert len(factory.sessions) == 2


@pytest.mark.asyncio
async def test_failed_counts_are_not_cached() -> None:
    factory = StubSessionFactory([3], error=ConnectionRefusedError("down"))
    service = _service(factory, FakeClock())

    with pytest.raises(ProviderApiError):
        await service.count_from_sender("alerts@example.com")

    factory.error = None
    result = await service.count_from_sender("alerts@example.com")
    assert (result.count, result.cached) == (3, False)
    assert all(session.closed for session in factory.sessions)


@pytest.mark.asyncio
async def test_credential_changes_invalidate_cached_counts(tmp_path) -> None:
    factory = StubSessionFactory([3])
    service = _service(factory, FakeClock())
    controller = StubController()
    admin = CredentialAdminService(
        resolver=CredentialSourceResolver(tmp_path / "credentials.json"),
        controller=controller,
        counter=service,
    )

    await service.count_from_sender("alerts@example.com")
    admin.upload_client_secret(
        json.dumps({"web": {"client_id": "id", "client_secret": "secret"}})
    )
    assert (await service.count_from_sender("alerts@example.com")).cached is False

    outcome = admin.clear()
    assert outcome == {"uploaded_secret_cleared": True, "stored_token_cleared": True}
    assert controller.forget_calls == 1
    assert (await service.count_from_sender("alerts@example.com")).cached is False


def test_rejected_upload_is_reraised(tmp_path) -> None:
    admin = CredentialAdminService(
        resolver=CredentialSourceResolver(tmp_path / "credentials.json"),
        controller=StubController(),
        counter=_service(StubSessionFactory([1]), FakeClock()),
    )

    with pytest.raises(InvalidCredentialsFormatError):
        admin.upload_client_secret(b"{}")


def test_expired_entries_are_dropped_on_put() -> None:
    clock = FakeClock()
    cache = SenderCountCache(10, clock=clock)
    for index in range(1000):
        cache.put(f"sender{index}@example.com", index)

    clock.now += 100
    cache.put("fresh@example.com", 1)

    assert len(cache) == 1
    assert cache.get("fresh@example.com") == 1
    assert cache.get("sender0@example.com") is None
