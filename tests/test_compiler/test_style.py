from __future__ import annotations

from scene_director.compiler.presets import DEFAULT_META_TOKENS, GLOBAL_STYLES
from scene_director.compiler.style import resolve_meta_tokens, resolve_style, resolve_style_instruction
from scene_director.schemas.project import ScriptPreset
from tests.factories import create_group, create_state


def test_project_style_used_without_group_override():
    state = create_state(style_prompt="cyberpunk")
    style = resolve_style(state, create_group())
    assert style.style_id == "cyberpunk"
    assert style.instruction == GLOBAL_STYLES["cyberpunk"]
    assert not style.is_realistic


def test_group_override_replaces_id_and_custom_text():
    state = create_state(style_prompt="custom", custom_style_instruction="project text")
    group = create_group(style_prompt="custom", custom_style_instruction="gritty noir ink")
    style = resolve_style(state, group)
    assert style.instruction == "gritty noir ink"

    # 组覆盖为预设时，项目的自定义文本不参与
    group = create_group(style_prompt="watercolor")
    assert resolve_style(state, group).instruction == GLOBAL_STYLES["watercolor"]


def test_realistic_styles_flagged():
    assert resolve_style(create_state(style_prompt="cinematic-realistic")).is_realistic
    assert resolve_style(create_state(style_prompt="vintage-film")).is_realistic
    assert not resolve_style(create_state(style_prompt="anime-makoto")).is_realistic


def test_unknown_style_degrades_to_empty():
    assert resolve_style_instruction("does-not-exist", None) == ""
    assert resolve_style_instruction("custom", None) == ""
    assert resolve_style_instruction(None, "ignored") == ""


class TestMetaTokens:
    def test_custom_tokens_win(self):
        state = create_state(custom_meta_tokens="moody, teal and orange")
        assert resolve_meta_tokens(state) == "moody, teal and orange"

    def test_builtin_preset_category(self):
        state = create_state(active_script_preset="documentary")
        assert resolve_meta_tokens(state) == DEFAULT_META_TOKENS["documentary"]

    def test_custom_preset_category(self):
        state = create_state(
            active_script_preset="my-ad",
            custom_script_presets=[ScriptPreset(id="my-ad", name="Ad", category="commercial")],
        )
        assert resolve_meta_tokens(state) == DEFAULT_META_TOKENS["commercial"]

    def test_unknown_preset_falls_back_to_custom(self):
        state = create_state(active_script_preset="missing")
        assert resolve_meta_tokens(state) == DEFAULT_META_TOKENS["custom"]
