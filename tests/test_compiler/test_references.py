from __future__ import annotations

from scene_director.compiler.references import (
    HIGH_CAPABILITIES,
    STANDARD_CAPABILITIES,
    resolve_capabilities,
    resolve_references,
)
from tests.factories import create_character, create_product, create_scene, create_state, png_data_uri

FACE = png_data_uri((1, 0, 0))
BODY = png_data_uri((2, 0, 0))
SIDE = png_data_uri((3, 0, 0))
BACK = png_data_uri((4, 0, 0))
MASTER = png_data_uri((5, 0, 0))


def _state(characters=None, products=None, character_ids=(), product_ids=()):
    scene = create_scene("s1", "1", character_ids=list(character_ids), product_ids=list(product_ids))
    return create_state([scene], characters=characters, products=products), scene


def test_capabilities_by_model():
    assert resolve_capabilities("gemini-3-pro-image-preview") == HIGH_CAPABILITIES
    assert resolve_capabilities("gemini-2.5-flash-image") == STANDARD_CAPABILITIES
    assert resolve_capabilities("my-model", ["my-model"]) == HIGH_CAPABILITIES
    assert resolve_capabilities(None) == STANDARD_CAPABILITIES


def test_standard_tier_takes_first_two_views():
    alice = create_character(face_image=FACE, body_image=BODY, side_image=SIDE, back_image=BACK)
    state, scene = _state([alice], character_ids=["c1"])
    roles = [a.role for a in resolve_references(state, scene, STANDARD_CAPABILITIES)]
    assert roles == ["FACE ID", "FULL BODY"]


def test_high_tier_takes_all_views_in_priority_order():
    alice = create_character(face_image=FACE, body_image=BODY, side_image=SIDE, back_image=BACK)
    state, scene = _state([alice], character_ids=["c1"])
    attachments = resolve_references(state, scene, HIGH_CAPABILITIES)
    assert [a.role for a in attachments] == ["FACE ID", "FULL BODY", "SIDE VIEW", "BACK VIEW"]
    assert attachments[0].label == "MASTER VISUAL: ALICE FACE ID"
    assert attachments[0].mime_type == "image/png"
    assert "AUTHORITATIVE identity anchor for Alice" in attachments[0].text


def test_master_image_fallback_when_no_view_in_tier():
    # 侧面图不在标准档位的前两个视图里，回退到主图
    alice = create_character(side_image=SIDE, master_image=MASTER)
    state, scene = _state([alice], character_ids=["c1"])
    attachments = resolve_references(state, scene, STANDARD_CAPABILITIES)
    assert [a.role for a in attachments] == ["PRIMARY"]

    attachments = resolve_references(state, scene, HIGH_CAPABILITIES)
    assert [a.role for a in attachments] == ["SIDE VIEW"]


def test_character_without_images_contributes_nothing():
    state, scene = _state([create_character()], character_ids=["c1"])
    assert resolve_references(state, scene, HIGH_CAPABILITIES) == []


def test_product_side_view_uses_left_or_right():
    soda = create_product(front=FACE, right=SIDE, top=BACK)
    state, scene = _state(products=[soda], product_ids=["p1"])
    roles = [a.role for a in resolve_references(state, scene, HIGH_CAPABILITIES)]
    assert roles == ["FRONT VIEW", "SIDE VIEW", "TOP VIEW"]


def test_order_follows_selection_characters_before_products():
    chars = [
        create_character("c1", "Alice", master_image=MASTER),
        create_character("c2", "Bob", master_image=MASTER),
    ]
    state, scene = _state(
        chars,
        [create_product(master_image=MASTER)],
        character_ids=["c2", "c1", "c2", "missing"],
        product_ids=["p1"],
    )
    labels = [a.label for a in resolve_references(state, scene, STANDARD_CAPABILITIES)]
    assert labels == [
        "MASTER VISUAL: BOB PRIMARY",
        "MASTER VISUAL: ALICE PRIMARY",
        "MASTER VISUAL: SODA PRIMARY",
    ]


def test_remote_images_stay_urls():
    alice = create_character(face_image="https://cdn.test/alice.png")
    state, scene = _state([alice], character_ids=["c1"])
    (attachment,) = resolve_references(state, scene, STANDARD_CAPABILITIES)
    assert attachment.url == "https://cdn.test/alice.png"
    assert attachment.data is None
