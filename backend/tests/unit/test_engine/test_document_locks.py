import threading

import pytest

from circuitflow.domain.models import Status
from circuitflow.engine.document_locks import DocumentLocks, get_document_locks
from circuitflow.engine.requirements import RequirementChecker
from circuitflow.utils.time import utc_now


def test_same_document_is_serialized():
    locks = DocumentLocks()
    entered = threading.Event()
    order = []

    def write_same():
        entered.set()
        with locks.hold("DOC-1"):
            order.append("second")

    with locks.hold("DOC-1"):
        worker = threading.Thread(target=write_same)
        worker.start()
        assert entered.wait(timeout=2)
        worker.join(timeout=0.2)
        assert worker.is_alive()
        order.append("first")

    worker.join(timeout=2)
    assert order == ["first", "second"]
    assert len(locks) == 0


def test_registry_is_emptied_after_each_hold():
    locks = DocumentLocks()

    for index in range(1000):
        with locks.hold(f"DOC-{index}"):
            assert f"DOC-{index}" in locks

    assert len(locks) == 0


def test_lock_released_when_block_raises():
    locks = DocumentLocks()

    with pytest.raises(RuntimeError):
        with locks.hold("DOC-1"):
            raise RuntimeError("boom")

    assert len(locks) == 0
    with locks.hold("DOC-1"):
        assert "DOC-1" in locks


def test_distinct_documents_do_not_block_each_other():
    locks = DocumentLocks()
    acquired = threading.Event()

    def hold_other():
        with locks.hold("DOC-2"):
            acquired.set()

    with locks.hold("DOC-1"):
        worker = threading.Thread(target=hold_other)
        worker.start()
        assert acquired.wait(timeout=2)
        worker.join()


def test_registry_is_process_wide():
    assert get_document_locks() is get_document_locks()


def test_requirement_checker_only_counts_required_statuses():
    now = utc_now()
    statuses = [
        Status(status_id="S1", status_key="S1", step_id="STP", title="a", is_required=True, created_at=now),
        Status(status_id="S2", status_key="S2", step_id="STP", title="b", is_required=False, created_at=now),
    ]
    checker = RequirementChecker()

    assert checker.is_satisfied([], [])
    assert not checker.is_satisfied(statuses, ["S2"])
    assert checker.is_satisfied(statuses, ["S1"])
    assert [s.status_id for s in checker.missing(statuses, [])] == ["S1"]
