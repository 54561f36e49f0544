import threading

import pytest

from typeinject import DependencyNotFoundError, Injector, InvalidArgumentError


def test_map_then_get_returns_value_and_found():
    inj = Injector()

    class A: ...

    a = A()
    inj.map(a)
    assert inj.get(A) == (a, True)


def test_map_is_fluent():
    inj = Injector()

    class A: ...

    class B: ...

    a, b = A(), B()
    assert inj.map(a).map(b) is inj
    assert inj.get(A)[0] is a
    assert inj.get(B)[0] is b


def test_map_builtin_values_keyed_by_their_type():
    inj = Injector()
    inj.map("hello").map(42)

    assert inj.get(str) == ("hello", True)
    assert inj.get(int) == (42, True)


def test_remap_same_type_overwrites_previous_value():
    inj = Injector()

    class A: ...

    a1, a2 = A(), A()
    inj.map(a1)
    inj.map(a2)

    value, found = inj.get(A)
    assert found
    assert value is a2


def test_get_unmapped_type_without_parent_is_not_found():
    inj = Injector()

    class A: ...

    assert inj.get(A) == (None, False)


def test_get_distinguishes_mapped_none_from_missing():
    inj = Injector()
    inj.set("nothing", None)

    assert inj.get("nothing") == (None, True)
    assert inj.get("missing") == (None, False)


def test_set_maps_explicit_token():
    inj = Injector()

    class Base: ...

    class Derived(Base): ...

    d = Derived()
    inj.set(Base, d)

    assert inj.get(Base) == (d, True)
    # concrete tokens only match exactly
    assert inj.get(Derived) == (None, False)


def test_set_accepts_string_tokens():
    inj = Injector()
    inj.set("dsn", "postgres://localhost/app")

    assert inj.get("dsn") == ("postgres://localhost/app", True)


def test_contains_checks_local_mapping_only():
    parent = Injector()
    child = parent.create_child()
    parent.set("a", 1)
    child.set("b", 2)

    assert "b" in child
    assert "a" not in child
    assert "a" in parent


def test_resolve_returns_value():
    inj = Injector()
    inj.set("port", 8080)
    assert inj.resolve("port") == 8080


def test_resolve_missing_token_raises_dependency_not_found():
    inj = Injector()

    class A: ...

    with pytest.raises(DependencyNotFoundError) as ctx:
        inj.resolve(A)
    assert ctx.value.token is A
    assert "Value not found for type" in str(ctx.value)


def test_dependency_not_found_is_a_lookup_error():
    inj = Injector()
    with pytest.raises(LookupError):
        inj.resolve("missing")


def test_set_parent_rejects_non_injector():
    inj = Injector()
    with pytest.raises(InvalidArgumentError):
        inj.set_parent(object())  # type: ignore[arg-type]


def test_concurrent_set_and_get_keep_every_mapping():
    inj = Injector()

    def worker(n: int) -> None:
        for i in range(100):
            inj.set(f"{n}-{i}", i)
            assert inj.get(f"{n}-{i}") == (i, True)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(f"{n}-99" in inj for n in range(8))
