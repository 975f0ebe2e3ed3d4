from __future__ import annotations

import pytest

from modelgate import (
    ActionNotAllowedError,
    All,
    ByConstraints,
    ById,
    Collection,
    DefinitionError,
    Instance,
    LifecycleError,
    Model,
)


def _clean_instance(model: Model, **values) -> Instance:
    return Instance(model, values, record_id=1)


# ---------------------------------------------------------------------------
# create (single)
# ---------------------------------------------------------------------------


def test_create_single_delegates_to_connector(user_model, connector, capture) -> None:
    user_model.create({"name": "alice"}, capture)

    assert connector.calls == [("create", ({"name": "alice"},))]
    assert capture.err is None
    assert isinstance(capture.result, Instance)
    assert capture.result["name"] == "alice"


def test_create_with_only_callback_uses_empty_values(user_model, connector, capture) -> None:
    user_model.create(capture)
    assert connector.calls == [("create", ({},))]
    assert capture.err is None


def test_create_converts_synchronous_domain_error_to_callback(make_connector, capture) -> None:
    boom = DefinitionError("connector refused")
    c = make_connector(raise_on_create=boom)
    m = Model.define("t", {"fields": {"x": str}, "connector": c})

    m.create({"x": "1"}, capture)

    assert capture.err is boom
    assert capture.result is None


def test_create_does_not_swallow_non_domain_errors(make_connector, capture) -> None:
    c = make_connector(raise_on_create=RuntimeError("driver crashed"))
    m = Model.define("t", {"fields": {"x": str}, "connector": c})

    with pytest.raises(RuntimeError, match="driver crashed"):
        m.create({"x": "1"}, capture)
    assert not capture.called


def test_create_rejects_unsupported_values(user_model) -> None:
    with pytest.raises(TypeError):
        user_model.create(42, lambda *a: None)


# ---------------------------------------------------------------------------
# save
# ---------------------------------------------------------------------------


def test_save_deleted_instance_fails_without_connector(user_model, connector, capture) -> None:
    inst = _clean_instance(user_model, name="a")
    inst.set("name", "b")
    inst._mark_deleted()

    user_model.save(inst, capture)

    assert isinstance(capture.err, LifecycleError)
    assert capture.result is None
    assert connector.calls == []


def test_save_clean_instance_is_noop(user_model, connector, capture) -> None:
    inst = _clean_instance(user_model, name="a")
    assert inst.dirty is False

    user_model.save(inst, capture)

    assert capture.calls == [(None, None)]
    assert connector.count("save") == 0


def test_save_dirty_instance_clears_flag_and_publishes(user_model, connector, capture) -> None:
    inst = _clean_instance(user_model, name="a")
    inst["name"] = "b"
    seen = []
    inst.subscribe("save", seen.append)

    user_model.save(inst, capture)

    assert connector.methods() == ["save"]
    assert capture.err is None
    assert capture.result is inst
    assert inst.dirty is False
    assert seen == [inst]


def test_save_untracked_record_always_goes_to_connector(user_model, connector, capture) -> None:
    user_model.save({"id": 7, "name": "x"}, capture)

    assert connector.methods() == ["save"]
    assert isinstance(capture.result, Instance)
    assert capture.result.dirty is False


def test_save_connector_error_forwarded_and_flag_kept(make_connector, capture) -> None:
    err = RuntimeError("write conflict")
    c = make_connector(save_error=err)
    m = Model.define("t", {"fields": {"x": str}, "connector": c})
    inst = _clean_instance(m, x="1")
    inst.set("x", "2")
    seen = []
    inst.subscribe("save", seen.append)

    m.save(inst, capture)

    assert capture.err is err
    assert inst.dirty is True
    assert seen == []


def test_update_is_save(user_model) -> None:
    assert Model.update is Model.save


def test_save_without_callback(user_model, connector) -> None:
    inst = _clean_instance(user_model, name="a")
    inst.set("name", "b")
    user_model.save(inst)
    assert inst.dirty is False


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


def test_delete_twice_second_fails_without_connector(user_model, connector, make_capture) -> None:
    inst = _clean_instance(user_model, name="a")
    events = []
    inst.subscribe("delete", events.append)

    first = make_capture()
    user_model.delete(inst, first)

    assert first.err is None
    assert first.result is inst
    assert inst.deleted is True
    assert events == [inst]

    second = make_capture()
    user_model.delete(inst, second)

    assert isinstance(second.err, LifecycleError)
    assert connector.count("delete") == 1
    assert events == [inst]


def test_delete_truthy_non_instance_result_marks_passed_instance(make_connector, capture) -> None:
    c = make_connector(delete_result=True)
    m = Model.define("t", {"fields": {"x": str}, "connector": c})
    inst = _clean_instance(m, x="1")

    m.delete(inst, capture)

    assert capture.calls == [(None, True)]
    assert inst.deleted is True


def test_delete_falsy_result_leaves_instance(make_connector, capture) -> None:
    c = make_connector(delete_result=None)
    m = Model.define("t", {"fields": {"x": str}, "connector": c})
    inst = _clean_instance(m, x="1")

    m.delete(inst, capture)

    assert capture.calls == [(None, None)]
    assert inst.deleted is False


def test_save_after_delete_fails(user_model, connector, make_capture) -> None:
    inst = _clean_instance(user_model, name="a")
    user_model.remove(inst, make_capture())
    inst.set("name", "b")

    cap = make_capture()
    user_model.save(inst, cap)

    assert isinstance(cap.err, LifecycleError)
    assert connector.count("save") == 0


def test_delete_all_is_passthrough_and_keeps_instance_flags(user_model, connector, capture) -> None:
    inst = _clean_instance(user_model, name="a")

    user_model.remove_all(capture)

    assert connector.methods() == ["delete_all"]
    assert capture.calls == [(None, 0)]
    assert inst.deleted is False


# ---------------------------------------------------------------------------
# reads / routing
# ---------------------------------------------------------------------------


def test_find_scalar_routes_to_find_one(user_model, connector, capture) -> None:
    user_model.find(42, capture)
    assert connector.calls == [("find_one", (42,))]


def test_find_mapping_routes_to_constraints(user_model, connector, capture) -> None:
    user_model.find({"status": "active"}, capture)
    assert connector.calls == [("find", ({"status": "active"},))]
    assert isinstance(capture.result, Collection)


def test_find_callable_routes_to_find_all(user_model, connector, capture) -> None:
    user_model.find(capture)
    assert connector.calls == [("find_all", ())]
    assert capture.err is None


def test_fetch_alias(user_model, connector, capture) -> None:
    user_model.fetch("abc", capture)
    assert connector.methods() == ["find_one"]


@pytest.mark.parametrize(
    "request_, expected",
    [
        (ById(5), ("find_one", (5,))),
        (ByConstraints({"a": 1}), ("find", ({"a": 1},))),
        (All(), ("find_all", ())),
    ],
)
def test_query_dispatch(user_model, connector, capture, request_, expected) -> None:
    user_model.query(request_, capture)
    assert connector.calls == [expected]


def test_query_rejects_unknown_request(user_model) -> None:
    with pytest.raises(TypeError):
        user_model.query({"a": 1})


def test_explicit_entry_points(user_model, connector, make_capture) -> None:
    user_model.find_by_id(1, make_capture())
    user_model.find_by_constraints({"name": "x"}, make_capture())
    user_model.find_all(make_capture())
    assert connector.methods() == ["find_one", "find", "find_all"]


# ---------------------------------------------------------------------------
# action gating
# ---------------------------------------------------------------------------


def test_disallowed_actions_fail_without_connector(make_connector, make_capture) -> None:
    c = make_connector()
    m = Model.define("ro", {"fields": {"x": str}, "connector": c, "actions": ["read"]})

    caps = [make_capture() for _ in range(4)]
    m.create({"x": "1"}, caps[0])
    inst = _clean_instance(m, x="1")
    inst.set("x", "2")
    m.save(inst, caps[1])
    m.delete(inst, caps[2])
    m.delete_all(caps[3])

    assert [type(cap.err) for cap in caps] == [ActionNotAllowedError] * 4
    assert [cap.err.action for cap in caps] == ["create", "update", "delete", "delete"]
    assert c.calls == []

    read = make_capture()
    m.find(1, read)
    assert c.methods() == ["find_one"]
