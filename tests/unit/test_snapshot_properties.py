"""Property-based tests for the store + projector pipeline.

Uses hypothesis to generate arbitrary add/update/delete sequences, including
duplicates, deletes of unknown pods and re-adds, and validates that:
 1. The store holds exactly the identities of a last-write-wins model
 2. The projected snapshot has one record per stored identity
 3. Each record reflects the last state written for its identity
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from podinformer.cache.store import LocalStore
from podinformer.models.events import ObjectKey
from podinformer.projector import project

_names = st.sampled_from(["p1", "p2", "p3", "p4"])
_namespaces = st.sampled_from(["default", "prod"])
_ips = st.sampled_from(["", "10.0.0.1", "10.0.0.2"])

_operations = st.lists(
    st.tuples(
        st.sampled_from(["add", "update", "delete"]),
        _namespaces,
        _names,
        _ips,
        st.booleans(),
    ),
    max_size=40,
)


def _raw(namespace: str, name: str, ip: str, ready: bool) -> dict:
    return {
        "metadata": {"name": name, "namespace": namespace},
        "status": {
            "podIP": ip,
            "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
        },
    }


class TestSnapshotProperties:
    @given(operations=_operations)
    @settings(max_examples=100)
    def test_snapshot_matches_last_write_wins_model(self, operations: list) -> None:
        store = LocalStore()
        model: dict[tuple[str, str], tuple[str, bool]] = {}

        for op, namespace, name, ip, ready in operations:
            key = ObjectKey(namespace, name)
            if op == "delete":
                store.apply_delete(key)
                model.pop((namespace, name), None)
            elif op == "add":
                store.apply_add(key, _raw(namespace, name, ip, ready))
                model[(namespace, name)] = (ip, ready)
            else:
                store.apply_update(key, _raw(namespace, name, ip, ready))
                model[(namespace, name)] = (ip, ready)

        pods = project(store.list_all())

        assert {(p.namespace, p.name) for p in pods} == set(model)
        assert len(pods) == len(model)
        for pod in pods:
            assert (pod.ip, pod.ready) == model[(pod.namespace, pod.name)]

    @given(operations=_operations)
    @settings(max_examples=50)
    def test_replaying_a_sequence_is_idempotent(self, operations: list) -> None:
        store = LocalStore()

        def _replay() -> list:
            for op, namespace, name, ip, ready in operations:
                key = ObjectKey(namespace, name)
                if op == "delete":
                    store.apply_delete(key)
                else:
                    store.apply_add(key, _raw(namespace, name, ip, ready))
            return sorted(project(store.list_all()), key=lambda p: (p.namespace, p.name))

        assert _replay() == _replay()
