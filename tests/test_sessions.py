from ollama_web_lib.protocol import server_factory
from ollama_web_lib.sessions import Session, SessionManager, SessionState, is_initialize_request


def _closed(manager: SessionManager, session_id: str) -> None:
    session = Session(session_id=session_id, transport=None, state=SessionState.ACTIVE)
    manager._sessions[session_id] = session
    manager._close(session, reason="test")


def test_closed_ids_are_not_reissued(registry):
    issued = iter(["a", "a", "b"])
    manager = SessionManager(server_factory(registry), id_factory=lambda: next(issued))

    _closed(manager, "a")

    assert manager._new_session_id() == "b"


def test_retired_ids_are_bounded(registry):
    manager = SessionManager(server_factory(registry), retired_limit=2)

    for session_id in ("a", "b", "c"):
        _closed(manager, session_id)

    assert list(manager._retired) == ["b", "c"]
    assert manager.session_count == 0


def test_close_is_idempotent(registry):
    manager = SessionManager(server_factory(registry))
    session = Session(session_id="a", transport=None, state=SessionState.ACTIVE)
    manager._sessions["a"] = session

    manager._close(session, reason="first")
    manager._close(session, reason="second")

    assert session.state is SessionState.CLOSED
    assert list(manager._retired) == ["a"]


def test_only_initialize_requests_open_sessions():
    assert is_initialize_request({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    assert not is_initialize_request({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    assert not is_initialize_request({"jsonrpc": "2.0", "method": "initialize"})
    assert not is_initialize_request([{"jsonrpc": "2.0", "id": 1, "method": "initialize"}])
    assert not is_initialize_request(None)
