import pytest

from module_library import Library, mapping_loader


@pytest.fixture
def library():
    return Library(loader=mapping_loader({}))


def test_clone_shares_definitions_and_singletons(library):
    library.define("foo", lambda: object())
    child = library.clone()

    assert child.registry is library.registry
    assert child.aliases is library.aliases
    assert child.using(["foo"], lambda foo: foo) is library.using(["foo"], lambda foo: foo)
    assert child.parent is library
    assert child.root is library
    assert library.children == [child]


def test_definitions_in_a_clone_are_visible_to_the_parent(library):
    library.clone().define("foo", lambda: "bar")

    assert library.using(["foo"], lambda foo: foo) == "bar"


def test_clone_and_reset_without_names_is_a_no_op(library):
    assert library.clone_and_reset([]) is library
    assert library.children == []


def test_clone_and_reset_leaves_the_parent_alone(library):
    library.define("foo", lambda: object())
    library.define("bar", lambda: object())
    foo = library.using(["foo"], lambda foo: foo)
    bar = library.using(["bar"], lambda bar: bar)

    child = library.clone_and_reset(["foo"])
    new_foo = child.using(["foo"], lambda foo: foo)

    assert new_foo is not foo
    assert child.using(["bar"], lambda bar: bar) is bar
    assert library.using(["foo"], lambda foo: foo) is foo
    assert child.resets == ("foo",)


def test_clone_and_reset_clears_alias_targets(library):
    library.define("greeting", lambda: object())
    library.aliases.add("app/greeting", "greeting")
    greeting = library.using(["greeting"], lambda greeting: greeting)

    child = library.clone_and_reset(["app/greeting"])

    assert child.using(["app/greeting"], lambda greeting: greeting) is not greeting


def test_reset_scope_does_not_see_parent_singletons_built_afterwards(library):
    library.define("foo", lambda: object())
    library.define("later", lambda: object())
    library.using(["foo"], lambda foo: foo)

    child = library.clone_and_reset(["foo"])
    in_parent = library.using(["later"], lambda later: later)

    assert child.using(["later"], lambda later: later) is not in_parent


def test_dump_describes_the_scope_tree(library):
    library.define("name", [library.collective({"names": []})], lambda c: {"names": c["names"]})
    library.define("parent", ["name"], lambda name: {"name": name})
    library.define("other", lambda: {"other": True})
    library.using(["parent", "other"], lambda parent, other: None)
    library.using([library.reset("name")], lambda name: None)

    report = library.dump()

    assert report["id"] == library.id
    assert report["root"] is True
    assert report["modules"] == ["name", "parent", "other"]
    assert [label.split("@")[0] for label in report["singletons"]] == ["name", "parent", "other"]

    [child] = report["children"]
    assert "root" not in child
    assert "modules" not in child
    assert "children" not in child
    [label] = child["singletons"]
    assert label.startswith("name@")
    assert label.endswith(" [reset]")


def test_reset_scope_keeps_parent_singletons_rebuilt_afterwards(library):
    library.define("x", lambda: object())
    library.define("y", lambda: object())
    x = library.using(["x"], lambda x: x)

    child = library.clone_and_reset(["y"])
    rebuilt = library.export("x", lambda: object())

    assert library.using(["x"], lambda x: x) is rebuilt
    assert child.using(["x"], lambda x: x) is x
