from __future__ import annotations

from scene_director.compiler.continuity import (
    LAST_SHOT_LABEL,
    MOODBOARD_LABEL,
    PERSPECTIVE_SHIFT,
    SET_LOCK_LABEL,
    ContinuityAnchors,
    build_continuity,
    parse_scene_number,
    select_anchors,
)
from tests.factories import create_group, create_scene, create_storyboard, png_data_uri


def test_parse_scene_number():
    assert parse_scene_number("12a") == 12
    assert parse_scene_number(" 7 ") == 7
    assert parse_scene_number("Intro") is None
    assert parse_scene_number(None) is None


def test_master_is_lowest_rendered_number_and_last_shot_is_nearest_before_target():
    state = create_storyboard(5, rendered=(1, 3))
    anchors = select_anchors("g1", state.scenes, target_index=3)
    assert anchors.master.id == "s1"
    assert anchors.last_shot.id == "s3"


def test_last_shot_dropped_when_same_as_master():
    state = create_storyboard(5, rendered=(1,))
    anchors = select_anchors("g1", state.scenes, target_index=1)
    assert anchors.master.id == "s1"
    assert anchors.last_shot is None


def test_master_stable_regardless_of_list_order():
    scenes = [
        create_scene("s3", "3", image=png_data_uri()),
        create_scene("s1", "1", image=png_data_uri()),
        create_scene("s2", "2"),
    ]
    anchors = select_anchors("g1", scenes, target_index=2)
    assert anchors.master.id == "s1"
    # s1 同时是最近的已渲染场景，所以不再作为 last shot
    assert anchors.last_shot is None

    anchors = select_anchors("g1", scenes, target_index=1)
    assert anchors.master.id == "s1"
    assert anchors.last_shot.id == "s3"


def test_unparseable_numbers_sort_last():
    scenes = [
        create_scene("sa", "Intro", image=png_data_uri()),
        create_scene("s2", "2", image=png_data_uri()),
    ]
    assert select_anchors("g1", scenes, target_index=2).master.id == "s2"


def test_other_groups_and_ungrouped_scenes_ignored():
    scenes = [
        create_scene("x1", "1", group_id="other", image=png_data_uri()),
        create_scene("s2", "2"),
    ]
    assert select_anchors("g1", scenes, target_index=1) == ContinuityAnchors()
    assert select_anchors(None, scenes, target_index=1) == ContinuityAnchors()


def test_build_continuity_with_both_anchors():
    state = create_storyboard(5, rendered=(1, 3))
    anchors = select_anchors("g1", state.scenes, target_index=3)
    result = build_continuity(create_group(), anchors)

    assert [a.label for a in result.attachments] == [SET_LOCK_LABEL, LAST_SHOT_LABEL]
    assert result.instruction.startswith(PERSPECTIVE_SHIFT)
    assert "(STRICT SET LOCK:" in result.instruction
    assert "(SHOT CONTINUITY:" in result.instruction


def test_moodboard_used_only_without_rendered_scenes():
    group = create_group(concept_image=png_data_uri((0, 0, 255)))
    result = build_continuity(group, ContinuityAnchors())
    assert [a.label for a in result.attachments] == [MOODBOARD_LABEL]
    assert result.instruction == f"{PERSPECTIVE_SHIFT} (CONCEPT LOCK)"

    state = create_storyboard(2, rendered=(1,))
    result = build_continuity(group, select_anchors("g1", state.scenes, target_index=1))
    assert [a.label for a in result.attachments] == [SET_LOCK_LABEL]


def test_no_group_no_continuity():
    result = build_continuity(None, ContinuityAnchors())
    assert result.attachments == []
    assert result.instruction == ""
