import pytest

from salesdesk import crud
from salesdesk.exceptions import ConflictError, NotFoundError, ValidationError


def _network(session):
    root = crud.register_distributor(session, user_id=1, referral_code="ROOT")
    b2 = crud.register_distributor(session, user_id=2, referral_code="B2", parent_referral_code="ROOT")
    b1 = crud.register_distributor(session, user_id=3, referral_code="B1", parent_referral_code="ROOT")
    c1 = crud.register_distributor(session, user_id=4, referral_code="C1", parent_referral_code="B1")
    return root, b1, b2, c1


def test_levels_follow_the_sponsor(test_db):
    root, b1, b2, c1 = _network(test_db)

    assert root.level == 1 and root.parent_id is None
    assert b1.level == 2 and b1.parent_id == root.id
    assert c1.level == 3 and c1.parent_id == b1.id
    assert crud.get_distributor_by_user(test_db, 4).referral_code == "C1"
    assert crud.get_distributor_by_code(test_db, "B2").id == b2.id


def test_registration_errors(test_db):
    crud.register_distributor(test_db, user_id=1, referral_code="ROOT")

    with pytest.raises(ConflictError, match="already registered"):
        crud.register_distributor(test_db, user_id=1, referral_code="OTHER")
    with pytest.raises(ConflictError, match="already in use"):
        crud.register_distributor(test_db, user_id=2, referral_code="ROOT")
    with pytest.raises(ValidationError, match="Invalid parent code"):
        crud.register_distributor(test_db, user_id=2, referral_code="NEW", parent_referral_code="NOPE")

    assert len(crud.list_distributors(test_db)) == 1


def test_direct_children_sorted_by_code(test_db):
    root, b1, b2, _ = _network(test_db)
    assert [child.referral_code for child in crud.direct_children(test_db, root.id)] == ["B1", "B2"]


def test_full_subtree_by_depth_then_code(test_db):
    root, *_ = _network(test_db)

    subtree = crud.full_subtree(test_db, root.id)

    assert [(node.referral_code, depth) for node, depth in subtree] == [
        ("ROOT", 1),
        ("B1", 2),
        ("B2", 2),
        ("C1", 3),
    ]
    assert crud.full_subtree(test_db, 9999) == []


def test_ascendant_chain_ends_at_root(test_db):
    _, _, _, c1 = _network(test_db)

    chain = crud.ascendant_chain(test_db, c1.id)

    assert [(node.referral_code, depth) for node, depth in chain] == [("C1", 1), ("B1", 2), ("ROOT", 3)]


def test_long_chain_is_walked_iteratively(test_db):
    crud.register_distributor(test_db, user_id=1, referral_code="D0000")
    for index in range(1, 120):
        crud.register_distributor(
            test_db,
            user_id=index + 1,
            referral_code=f"D{index:04d}",
            parent_referral_code=f"D{index - 1:04d}",
        )

    leaf = crud.get_distributor_by_code(test_db, "D0119")
    assert leaf.level == 120
    assert len(crud.ascendant_chain(test_db, leaf.id)) == 120
    root = crud.get_distributor_by_code(test_db, "D0000")
    assert len(crud.full_subtree(test_db, root.id)) == 120


def test_reassign_parent_rejects_cycles(test_db):
    root, b1, b2, c1 = _network(test_db)

    with pytest.raises(ValidationError):
        crud.reassign_parent(test_db, b1.id, "C1")
    with pytest.raises(NotFoundError):
        crud.reassign_parent(test_db, 9999, "ROOT")

    moved = crud.reassign_parent(test_db, c1.id, "B2")
    assert moved.parent_id == b2.id
    # Stored level is a registration snapshot.
    assert moved.level == 3

    detached = crud.reassign_parent(test_db, b2.id, None)
    assert detached.parent_id is None
