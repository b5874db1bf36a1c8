import threading
import time
from concurrent.futures import ThreadPoolExecutor

from extraction import service


def test_concurrent_first_requests_share_one_orchestrator(monkeypatch):
    built = []
    barrier = threading.Barrier(8)

    def slow_build(settings):
        time.sleep(0.05)
        instance = object()
        built.append(instance)
        return instance

    def first_request():
        barrier.wait()
        return service.get_orchestrator()

    monkeypatch.setattr(service, "_orchestrator", None)
    monkeypatch.setattr(service, "build_orchestrator", slow_build)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: first_request(), range(8)))

    assert len(built) == 1
    assert all(result is built[0] for result in results)
    assert service.current_orchestrator() is built[0]
