import threading
from concurrent.futures import ThreadPoolExecutor

from roster.schemas import StudentRecord
from roster.services import StudentService


def test_lost_lookup_race_is_caught_by_unique_index(store, monkeypatch):
    svc = StudentService(store)
    assert svc.create(StudentRecord(netid='r1', name='first')) is True
    # simulate a concurrent insert landing between lookup and insert
    monkeypatch.setattr(store, 'find_one', lambda _filter: None)
    assert svc.create(StudentRecord(netid='r1', name='second')) is False
    monkeypatch.undo()
    assert [s.name for s in store.find_all()] == ['first']


def test_concurrent_creates_store_exactly_one_record(store):
    workers = 8
    barrier = threading.Barrier(workers)

    def create(i):
        barrier.wait()
        return StudentService(store).create(StudentRecord(netid='same', name=f'w{i}', grade=i))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(create, range(workers)))

    assert outcomes.count(True) == 1
    assert outcomes.count(False) == workers - 1
    assert len(store.find_all()) == 1


def test_concurrent_requests_share_one_store(client, store):
    def post(i):
        return client.post('/Student', json={'netid': f'c{i}', 'year': 2010 + i % 5, 'grade': 60 + i}).status_code

    with ThreadPoolExecutor(max_workers=4) as pool:
        codes = list(pool.map(post, range(20)))

    assert codes == [200] * 20
    assert len(store.find_all()) == 20
