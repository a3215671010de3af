from .assembler import assemble_prompt, build_concept_prompt, compile_render_request
from .continuity import select_anchors
from .references import ModelCapabilities, resolve_capabilities
from .sanitizer import sanitize

__all__ = [
    "ModelCapabilities",
    "assemble_prompt",
    "build_concept_prompt",
    "compile_render_request",
    "resolve_capabilities",
    "sanitize",
    "select_anchors",
]
