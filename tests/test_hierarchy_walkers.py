from salesdesk.core.hierarchy import children_index, walk_ascendants, walk_descendants, would_create_cycle


def _identity(node):
    return node


def _children_getter(parents):
    index = children_index(parents)

    def get_children(batch):
        return [child for node in batch for child in sorted(index.get(node, []))]

    return get_children


def test_walk_ascendants_nearest_first():
    parents = {"c": "b", "b": "a", "a": None}
    chain = walk_ascendants("c", parents.get, key=_identity)
    assert chain == [("c", 1), ("b", 2), ("a", 3)]


def test_walk_ascendants_stops_on_cycle():
    parents = {"a": "b", "b": "a"}
    chain = walk_ascendants("a", parents.get, key=_identity)
    assert chain == [("a", 1), ("b", 2)]


def test_deep_chain_does_not_recurse():
    parents = {0: None}
    parents.update({index: index - 1 for index in range(1, 500)})

    chain = walk_ascendants(499, parents.get, key=_identity)
    assert len(chain) == 500
    assert chain[-1] == (0, 500)

    subtree = walk_descendants(0, _children_getter(parents), key=_identity)
    assert len(subtree) == 500
    assert subtree[-1] == (499, 500)


def test_walk_descendants_breadth_first():
    parents = {"root": None, "b": "root", "a": "root", "c": "a"}
    nodes = walk_descendants("root", _children_getter(parents), key=_identity)
    assert nodes == [("root", 1), ("a", 2), ("b", 2), ("c", 3)]


def test_walk_descendants_ignores_cycles_and_missing_start():
    get_children = lambda batch: ["a", "b"]  # noqa: E731
    assert walk_descendants("a", get_children, key=_identity) == [("a", 1), ("b", 2)]
    assert walk_descendants(None, get_children, key=_identity) == []


def test_would_create_cycle():
    parents = {"root": None, "mid": "root", "leaf": "mid"}
    assert would_create_cycle("root", "leaf", parents)
    assert would_create_cycle("mid", "mid", parents)
    assert not would_create_cycle("leaf", "root", parents)
    assert not would_create_cycle("mid", None, parents)
