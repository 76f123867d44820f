"""
Tests unitaires pour le contexte process (compteur, dernier modèle).
"""
import threading
from unittest.mock import MagicMock

from opencode_proxy.config.settings import ProxyConfig
from opencode_proxy.core.context import ProxyContext


def make_context():
    return ProxyContext(config=ProxyConfig(), client=MagicMock())


def test_request_ids_start_at_one():
    context = make_context()
    assert [context.next_request_id() for _ in range(3)] == [1, 2, 3]


def test_request_ids_are_unique_across_threads():
    context = make_context()
    ids = []
    ids_lock = threading.Lock()
    barrier = threading.Barrier(50)

    def worker():
        barrier.wait()
        request_id = context.next_request_id()
        with ids_lock:
            ids.append(request_id)

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(ids) == list(range(1, 51))


def test_observe_model_reports_changes_only():
    context = make_context()
    assert context.observe_model("claude-sonnet") is True
    assert context.observe_model("claude-sonnet") is False
    assert context.observe_model("claude-opus") is True
    assert context.last_model == "claude-opus"


def test_missing_model_is_ignored():
    context = make_context()
    context.observe_model("claude-sonnet")
    assert context.observe_model(None) is False
    assert context.observe_model("") is False
    assert context.last_model == "claude-sonnet"
