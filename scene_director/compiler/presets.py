"""风格 / 摄影预设表

所有查表都是静默降级：未知的值返回空字符串，不抛异常。
"""
from __future__ import annotations

GLOBAL_STYLES: dict[str, str] = {
    "cinematic-realistic": (
        "LIVE-ACTION MOVIE SCREENGRAB, shot on Arri Alexa, 35mm film, hyper-realistic, photorealistic, 8k, "
        "highly detailed skin texture, pores, dramatic natural lighting, shallow depth of field, color graded, "
        "film grain, masterpiece. NEGATIVE: (STRICT NO ANIME, NO CARTOON, NO 2D, NO DRAWING, NO ILLUSTRATION, "
        "NO PAINTING)."
    ),
    "3d-pixar": (
        "3D RENDER STYLE, Pixar animation style, octane render, unreal engine 5, cute, vibrant lighting, "
        "soft smooth textures, expressive, volumetric lighting, masterpiece, high fidelity, 8k. NEGATIVE: "
        "(STRICT NO PHOTOREALISM, NO REAL-LIFE, NO 2D, NO SKETCH)."
    ),
    "anime-makoto": (
        "ANIME STYLE, Makoto Shinkai art style, high quality 2D animation, beautiful sky, detailed background, "
        "vibrant colors, emotional atmosphere, cell shading, masterpiece, official art, 4k. NEGATIVE: "
        "(STRICT NO PHOTOREALISM, NO 3D RENDER, NO REAL-LIFE)."
    ),
    "vintage-film": (
        "1980s vintage movie look, film grain, retro aesthetic, warm tones, soft focus, kodak portra 400, "
        "nostalgia atmosphere, analog photography, grainy, nostalgic, classic movie."
    ),
    "cyberpunk": (
        "Cyberpunk aesthetic, neon lighting, dark atmosphere, futuristic, high contrast, wet streets, "
        "technological details, blade runner style, futuristic, glowing neon, high tech, intricate details, "
        "masterpiece."
    ),
    "watercolor": (
        "Watercolor painting style, soft edges, artistic, painterly, dreamy atmosphere, paper texture, "
        "pastel colors, traditional medium, wet on wet, masterpiece, artistic, detailed."
    ),
    "dark-fantasy": (
        "Dark fantasy art, elden ring style, gritty, atmospheric, ominous lighting, detailed armor and textures, "
        "epic scale, oil painting aesthetic, masterpiece, oil painting, intricate, ominous, highly detailed, "
        "trending on artstation."
    ),
}

CUSTOM = "custom"

# 这些风格会额外追加“禁止动漫/卡通”的负面约束
REALISTIC_STYLES = frozenset({"cinematic-realistic", "vintage-film"})

CAMERA_MODELS: dict[str, str] = {
    "arri-alexa-35": "Shot on ARRI Alexa 35, rich cinematic colors, natural skin tones, wide dynamic range",
    "red-v-raptor": "Shot on RED V-Raptor 8K, high contrast, razor sharp details, vivid colors",
    "sony-venice-2": "Shot on Sony Venice 2, natural color science, beautiful skin tones, filmic look",
    "blackmagic-ursa": "Shot on Blackmagic URSA, organic film-like texture, Blackmagic color science",
    "canon-c70": "Shot on Canon C70, documentary style, natural colors, versatile look",
    "panasonic-s1h": "Shot on Panasonic S1H, natural tones, subtle film grain, professional video look",
}

LENS_OPTIONS: dict[str, str] = {
    "16mm": "16mm ultra wide angle lens, expansive field of view, dramatic perspective",
    "24mm": "24mm wide angle lens, environmental context, slight distortion",
    "35mm": "35mm lens, natural perspective, slight wide angle",
    "50mm": "50mm lens, natural human perspective, minimal distortion",
    "85mm": "85mm portrait lens, shallow depth of field, beautiful bokeh, flattering compression",
    "135mm": "135mm telephoto lens, compressed background, intimate feel, creamy bokeh",
    "200mm": "200mm telephoto lens, extreme background compression, voyeuristic feel",
    "anamorphic": "anamorphic lens, horizontal lens flares, oval bokeh, cinematic widescreen 2.39:1 aspect ratio",
    "macro": "macro lens, extreme close-up, sharp details, shallow depth of field",
}

# 镜头角度只有 label，label 本身就是 prompt 片段
CAMERA_ANGLES: dict[str, str] = {
    "wide-shot": "Wide Shot (WS)",
    "medium-shot": "Medium Shot (MS)",
    "close-up": "Close-Up (CU)",
    "extreme-cu": "Extreme Close-Up (ECU)",
    "ots": "Over-the-Shoulder (OTS)",
    "low-angle": "Low Angle (Hero Shot)",
    "high-angle": "High Angle (Vulnerable)",
    "dutch-angle": "Dutch Angle (Tension)",
    "pov": "POV (First Person)",
    "establishing": "Establishing Shot",
    "two-shot": "Two Shot",
    "insert": "Insert / Detail Shot",
}

DEFAULT_META_TOKENS: dict[str, str] = {
    "film": "cinematic lighting, depth of field, film grain, anamorphic lens flare, color graded, atmospheric haze",
    "documentary": "natural light, handheld camera feel, raw authentic look, observational style, candid moments",
    "commercial": (
        "product hero lighting, clean studio aesthetics, vibrant colors, high production value, aspirational mood"
    ),
    "music-video": (
        "dramatic lighting, high contrast, stylized color palette, dynamic angles, music video aesthetic"
    ),
    "custom": "professional photography, detailed textures, balanced composition, thoughtful lighting",
}

# 内置脚本预设 id -> 类别
SCRIPT_PRESET_CATEGORIES: dict[str, str] = {
    "film-animation": "film",
    "documentary": "documentary",
    "commercial": "commercial",
    "music-video": "music-video",
}
