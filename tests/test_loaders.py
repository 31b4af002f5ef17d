import pytest

from module_library.domain import LoadedModule, LoadedValue, Module
from module_library.errors import ResolutionError
from module_library.loaders import import_loader, load_external, mapping_loader


def test_mapping_loader_wraps_values_and_modules():
    module = Module("greeting", (), lambda: "hi")
    load = mapping_loader({"plain": 42, "app.greeting": module})

    assert load("plain") == LoadedValue(42)
    assert load("app.greeting") == LoadedModule(module)
    assert load("app.greeting").canonical_name == "greeting"


def test_mapping_loader_raises_not_found():
    with pytest.raises(ModuleNotFoundError, match="Cannot find module 'missing'"):
        mapping_loader({})("missing")


def test_import_loader_returns_python_modules_as_values():
    import json

    assert import_loader()("json") == LoadedValue(json)


def test_import_loader_returns_published_modules(tmp_path, monkeypatch):
    (tmp_path / "published_greeting.py").write_text(
        "from module_library.domain import Module\n"
        "__library_module__ = Module('greeting', (), lambda: 'hi')\n"
    )
    monkeypatch.syspath_prepend(str(tmp_path))

    result = import_loader()("published_greeting")

    assert isinstance(result, LoadedModule)
    assert result.canonical_name == "greeting"


def test_import_loader_resolves_relative_identifiers(tmp_path, monkeypatch):
    package = tmp_path / "relative_app"
    package.mkdir()
    (package / "__init__.py").write_text("")
    (package / "colours.py").write_text("PRIMARY = ['red', 'green', 'blue']\n")
    monkeypatch.syspath_prepend(str(tmp_path))

    result = import_loader("relative_app")(".colours")

    assert result.value.PRIMARY == ["red", "green", "blue"]


def test_import_loader_rejects_empty_modules(tmp_path, monkeypatch):
    (tmp_path / "nothing_here.py").write_text("")
    monkeypatch.syspath_prepend(str(tmp_path))

    with pytest.raises(ResolutionError, match="nothing_here module has nothing in it"):
        import_loader()("nothing_here")


def test_not_found_hints_at_capitalisation():
    with pytest.raises(ModuleNotFoundError, match=r"capitalized right\?") as raised:
        load_external(mapping_loader({}), "Greeting", ["greeting"])

    assert "The library knows about modules ['greeting']" in str(raised.value)
    assert isinstance(raised.value.__cause__, ModuleNotFoundError)


def test_not_found_hints_at_installation_for_package_names():
    with pytest.raises(ModuleNotFoundError, match=r"is it installed\?"):
        load_external(mapping_loader({}), "requests", [])


def test_not_found_names_the_module_being_built():
    with pytest.raises(ModuleNotFoundError, match="We were trying to load it for rider"):
        load_external(mapping_loader({}), "app.turtle", [], for_name="rider")


def test_other_loader_errors_propagate():
    def broken(identifier):
        raise RuntimeError("disk on fire")

    with pytest.raises(RuntimeError, match="disk on fire"):
        load_external(broken, "anything", [])


class LegacyImportError(ImportError):
    def __init__(self, identifier):
        super().__init__(f"No legacy module {identifier}")


def test_not_found_hints_survive_custom_error_constructors():
    def legacy(identifier):
        raise LegacyImportError(identifier)

    with pytest.raises(LegacyImportError, match=r"No legacy module thing.*knows about modules \['turtle'\]"):
        load_external(legacy, "thing", ["turtle"])


def test_import_loader_rejects_relative_identifiers_without_package():
    with pytest.raises(ResolutionError, match="relative identifier '.greeting' without a package"):
        import_loader()(".greeting")
