import pytest

from ksharp.ksharp_datatypes import Environment, KSharpClass, KSharpInstance
from ksharp.ksharp_errors import KSharpRuntimeError
from ksharp.ksharp_tokens import Token, TokenType


def name(text: str) -> Token:
    return Token(TokenType.IDENTIFIER, text, None, 7)


@pytest.fixture
def chain():
    root = Environment()
    root.define("a", 1.0)
    middle = Environment(root)
    middle.define("a", 2.0)
    leaf = Environment(middle)
    return root, middle, leaf


def test_get_walks_to_nearest_binding(chain):
    root, middle, leaf = chain
    assert leaf.get(name("a")) == 2.0
    assert root.get(name("a")) == 1.0
    assert "a" not in leaf and "a" in middle


def test_distance_access_touches_exact_frame(chain):
    root, middle, leaf = chain
    assert leaf.ancestor(0) is leaf
    assert leaf.ancestor(2) is root
    assert leaf.get_at(2, "a") == 1.0
    leaf.assign_at(1, name("a"), 5.0)
    assert middle.values["a"] == 5.0
    assert root.values["a"] == 1.0


def test_assign_updates_existing_binding_only(chain):
    root, middle, leaf = chain
    leaf.assign(name("a"), 9.0)
    assert middle.values["a"] == 9.0
    assert "a" not in leaf


def test_undefined_names_raise_with_token(chain):
    _, _, leaf = chain
    with pytest.raises(KSharpRuntimeError) as excinfo:
        leaf.get(name("nope"))
    assert excinfo.value.message == "Undefined variable 'nope'."
    assert excinfo.value.line == 7
    with pytest.raises(KSharpRuntimeError):
        leaf.assign(name("nope"), 1.0)


def test_runtime_error_without_token_has_no_line():
    assert KSharpRuntimeError(None, "boom").line == -1


def test_instance_fields_need_method_context():
    klass = KSharpClass("Box", None, {})
    box = KSharpInstance(klass)
    with pytest.raises(KSharpRuntimeError):
        box.set_field(name("w"), 1.0, in_method=False)
    box.set_field(name("w"), 1.0, in_method=True)
    box.set_field(name("w"), 2.0, in_method=False)
    assert box.get_field(name("w")) == 2.0


def test_class_lookup_walks_superclass_chain():
    base = KSharpClass("Base", None, {}, static_methods={"make": "static"}, get_methods={"g": "getter"})
    child = KSharpClass("Child", base, {})
    assert child.find_get_method("g") == "getter"
    assert child.find_set_method("g") is None
    assert child.get_static_method(name("make")) == "static"
    assert child.arity() == 0
    assert repr(child) == "<KSharpClass Child <- Base>"


def test_distance_past_the_chain_is_not_clamped(chain):
    _, _, leaf = chain
    with pytest.raises(AttributeError):
        leaf.get_at(3, "a")
