import httpx
import pytest
import pytest_asyncio

from dodiddone.errors import AuthRequiredError, StoreError, StoreErrorReason
from dodiddone.events import SignedOut
from dodiddone.models import TaskStatus
from dodiddone.store import TaskStoreClient
from dodiddone.task_list import ListState, TaskListController


@pytest_asyncio.fixture
async def signed_in(gateway, make_user):
    await make_user('nia@example.com', 'nia-pw', name='Nia')
    return await gateway.login('nia@example.com', 'nia-pw')


@pytest.mark.asyncio
async def test_create_list_update_delete(store, signed_in):
    uid = signed_in.user_id
    first = await store.create(uid, 'Review quarterly report', 'numbers')
    second = await store.create(uid, 'Team meeting')

    assert first.status is TaskStatus.IN_PROGRESS
    assert first.user_id == uid
    assert second.description == ''
    assert [t.id for t in await store.list(uid)] == [second.id, first.id]

    done = await store.update_status(first.id, uid, TaskStatus.DONE)
    assert done.done and done.title == first.title
    assert done.updated_at > first.updated_at

    edited = await store.update(second.id, uid, {'title': 'Team sync', 'status': TaskStatus.DONE, 'description': None})
    assert (edited.title, edited.status) == ('Team sync', TaskStatus.DONE)

    await store.delete(first.id, uid)
    await store.delete(first.id, uid)
    assert [t.id for t in await store.list(uid)] == [second.id]


@pytest.mark.asyncio
async def test_error_reasons(store, signed_in):
    uid = signed_in.user_id

    with pytest.raises(StoreError) as missing:
        await store.update_status('missing', uid, TaskStatus.DONE)
    assert missing.value.reason is StoreErrorReason.NOT_FOUND

    with pytest.raises(StoreError) as blank:
        await store.create(uid, '   ')
    assert blank.value.reason is StoreErrorReason.CONSTRAINT_VIOLATION

    with pytest.raises(StoreError) as denied:
        await store.list('someone-else')
    assert denied.value.reason is StoreErrorReason.PERMISSION_DENIED


@pytest.mark.asyncio
async def test_rejected_token_clears_session(store, gateway, signed_in, http):
    await http.post('/auth/logout', headers=gateway.auth_headers())
    seen = []
    gateway.on_session_change(seen.append)

    with pytest.raises(AuthRequiredError):
        await store.list(signed_in.user_id)

    assert gateway.session is None
    assert seen == [SignedOut()]


@pytest.mark.asyncio
async def test_network_failure(gateway):
    def refuse(request):
        raise httpx.ConnectTimeout('timed out', request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url='http://test') as client:
        with pytest.raises(StoreError) as excinfo:
            await TaskStoreClient(client, gateway).list('u1')
    assert excinfo.value.reason is StoreErrorReason.NETWORK_FAILURE


@pytest.mark.asyncio
async def test_status_fallback_without_code(gateway):
    def conflict(request):
        return httpx.Response(409, json={'detail': 'duplicate'})

    async with httpx.AsyncClient(transport=httpx.MockTransport(conflict), base_url='http://test') as client:
        with pytest.raises(StoreError) as excinfo:
            await TaskStoreClient(client, gateway).create('u1', 'x')
    assert excinfo.value.reason is StoreErrorReason.CONSTRAINT_VIOLATION


@pytest.mark.asyncio
async def test_malformed_payload_is_unknown(gateway):
    def junk(request):
        return httpx.Response(200, json=[{'id': 'only-an-id'}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(junk), base_url='http://test') as client:
        with pytest.raises(StoreError) as excinfo:
            await TaskStoreClient(client, gateway).list('u1')
    assert excinfo.value.reason is StoreErrorReason.UNKNOWN


@pytest.mark.asyncio
async def test_non_json_success_reply_is_unknown(gateway, fake_gateway, notifier):
    def proxy_page(request):
        return httpx.Response(200, text='<html>proxy</html>')

    async with httpx.AsyncClient(transport=httpx.MockTransport(proxy_page), base_url='http://test') as client:
        store = TaskStoreClient(client, gateway)
        with pytest.raises(StoreError) as excinfo:
            await store.create('u1', 'x')
        assert excinfo.value.reason is StoreErrorReason.UNKNOWN

        tasks = TaskListController(store, fake_gateway, notifier)
        with pytest.raises(StoreError):
            await tasks.load()
    assert tasks.state is ListState.LOAD_ERROR
    assert notifier.latest.title == 'Failed to load tasks'
