import httpx
import pytest

from dodiddone.errors import AuthError, AuthErrorReason, AuthRequiredError
from dodiddone.events import SignedIn, SignedOut
from dodiddone.gateway import SessionGateway


@pytest.mark.asyncio
async def test_login_establishes_session_and_emits(gateway, make_user, http):
    await make_user('gina@example.com', 'gina-pw', name='Gina')
    seen = []
    gateway.on_session_change(seen.append)

    session = await gateway.login('gina@example.com', 'gina-pw')

    assert session.email == 'gina@example.com'
    assert session.display_name == 'Gina'
    assert gateway.session == session
    assert gateway.auth_headers()['Authorization'].startswith('Bearer ')
    assert seen == [SignedIn(session)]


@pytest.mark.asyncio
async def test_login_with_wrong_password_maps_reason(gateway, make_user):
    await make_user('hank@example.com', 'hank-pw')
    with pytest.raises(AuthError) as excinfo:
        await gateway.login('hank@example.com', 'nope')
    assert excinfo.value.reason is AuthErrorReason.INVALID_CREDENTIALS
    assert gateway.session is None


@pytest.mark.asyncio
async def test_signup_then_duplicate(gateway, http):
    session = await gateway.signup('Ivy', 'ivy@example.com', 'ivy-secret')
    assert session is not None and session.name == 'Ivy'

    other = SessionGateway(http)
    with pytest.raises(AuthError) as excinfo:
        await other.signup('Ivy', 'ivy@example.com', 'ivy-secret')
    assert excinfo.value.reason is AuthErrorReason.USER_ALREADY_EXISTS


@pytest.mark.asyncio
async def test_signup_weak_password(gateway):
    with pytest.raises(AuthError) as excinfo:
        await gateway.signup('Jo', 'jo@example.com', '123')
    assert excinfo.value.reason is AuthErrorReason.WEAK_PASSWORD


@pytest.mark.asyncio
async def test_logout_clears_and_emits_signed_out(gateway, make_user):
    await make_user('kim@example.com', 'kim-pw')
    await gateway.login('kim@example.com', 'kim-pw')
    seen = []
    gateway.on_session_change(seen.append)

    await gateway.logout()

    assert gateway.session is None
    assert gateway.auth_headers() == {}
    assert seen == [SignedOut()]
    assert await gateway.get_current_session() is None


@pytest.mark.asyncio
async def test_logout_without_session_is_quiet(gateway):
    seen = []
    gateway.on_session_change(seen.append)
    await gateway.logout()
    assert seen == []


@pytest.mark.asyncio
async def test_current_session_revalidates_with_backend(gateway, make_user, http):
    await make_user('lee@example.com', 'lee-pw')
    session = await gateway.login('lee@example.com', 'lee-pw')
    assert await gateway.get_current_session() == session

    # the token is revoked behind the client's back
    await http.post('/auth/logout', headers=gateway.auth_headers())
    seen = []
    gateway.on_session_change(seen.append)

    assert await gateway.get_current_session() is None
    assert gateway.session is None
    assert seen == [SignedOut()]


@pytest.mark.asyncio
async def test_network_failure_is_reported_as_auth_error():
    def refuse(request):
        raise httpx.ConnectError('connection refused', request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url='http://test') as client:
        gateway = SessionGateway(client)
        with pytest.raises(AuthError) as excinfo:
            await gateway.login('a@example.com', 'pw')
    assert excinfo.value.reason is AuthErrorReason.NETWORK_FAILURE
    assert excinfo.value.user_message == 'Something went wrong. Please try again.'


@pytest.mark.asyncio
async def test_unrecognised_error_body_is_unknown():
    def broken(request):
        return httpx.Response(500, text='oops')

    async with httpx.AsyncClient(transport=httpx.MockTransport(broken), base_url='http://test') as client:
        with pytest.raises(AuthError) as excinfo:
            await SessionGateway(client).login('a@example.com', 'pw')
    assert excinfo.value.reason is AuthErrorReason.UNKNOWN


@pytest.mark.asyncio
async def test_reset_request_and_update_password(gateway, make_user):
    await make_user('max@example.com', 'max-old-pw')
    await gateway.reset_password_request('max@example.com', redirect_to='http://localhost/reset-password')

    await gateway.login('max@example.com', 'max-old-pw')
    await gateway.update_password('max-new-pw')
    await gateway.logout()

    with pytest.raises(AuthError):
        await gateway.login('max@example.com', 'max-old-pw')
    assert (await gateway.login('max@example.com', 'max-new-pw')).email == 'max@example.com'


@pytest.mark.asyncio
async def test_update_password_requires_session(gateway):
    with pytest.raises(AuthRequiredError):
        await gateway.update_password('whatever1')


@pytest.mark.asyncio
async def test_verify_rejects_unknown_token(gateway):
    with pytest.raises(AuthError) as excinfo:
        await gateway.verify('not-a-token', 'recovery')
    assert excinfo.value.reason is AuthErrorReason.INVALID_TOKEN


@pytest.mark.asyncio
async def test_non_json_success_reply_is_unknown():
    def proxy_page(request):
        return httpx.Response(200, text='<html>proxy</html>')

    async with httpx.AsyncClient(transport=httpx.MockTransport(proxy_page), base_url='http://test') as client:
        gateway = SessionGateway(client)
        with pytest.raises(AuthError) as excinfo:
            await gateway.login('a@example.com', 'pw')
    assert excinfo.value.reason is AuthErrorReason.UNKNOWN
    assert gateway.session is None
