import numpy as np

from marker_tracker.registry import MarkerRegistry
from marker_tracker.tracker_types import NO_PARENT, ROOT


def test_ensure_record_creates_blank_record_once():
    reg = MarkerRegistry()
    rec = reg.ensure_record(4)

    assert rec.marker_id == 4
    assert rec.parent_id == NO_PARENT
    assert rec.transform_to_parent is None
    assert not rec.visible
    assert reg.ensure_record(4) is rec
    assert len(reg) == 1


def test_designate_anchor_is_root_identity_and_visible():
    reg = MarkerRegistry()
    rec = reg.designate_anchor(2)

    assert rec.parent_id == ROOT
    assert rec.is_anchor
    assert rec.visible
    assert np.allclose(rec.transform_to_parent, np.eye(4))
    assert np.allclose(rec.transform_to_world, np.eye(4))
    assert rec.pose_to_world.position.tolist() == [0.0, 0.0, 0.0]


def test_reset_and_mark_visible():
    reg = MarkerRegistry()
    reg.designate_anchor(1)
    reg.ensure_record(5)

    reg.reset_visibility()
    assert reg.visible_records() == []

    reg.mark_visible([5, 42])

    assert [r.marker_id for r in reg.visible_records()] == [5]
    # unregistered ids are not created by marking
    assert 42 not in reg


def test_iteration_is_in_ascending_id_order():
    reg = MarkerRegistry()
    for mid in (9, 3, 6):
        reg.ensure_record(mid)
    assert [r.marker_id for r in reg] == [3, 6, 9]


def test_prune_keeps_only_anchor_and_reports_dropped():
    reg = MarkerRegistry()
    anchor = reg.designate_anchor(1)
    reg.ensure_record(7)
    reg.ensure_record(3)

    dropped = reg.prune(1)

    assert dropped == [3, 7]
    assert reg.ids() == {1}
    assert reg.get(1) is anchor


def test_prune_without_anchor_empties_registry():
    reg = MarkerRegistry()
    reg.ensure_record(7)
    assert reg.prune(None) == [7]
    assert len(reg) == 0
