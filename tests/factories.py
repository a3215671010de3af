from __future__ import annotations

import base64
import io

from PIL import Image

from scene_director.schemas.project import (
    Character,
    Product,
    ProductViews,
    ProjectState,
    Scene,
    SceneGroup,
)


def png_base64(color: tuple[int, int, int] = (200, 40, 40), size: tuple[int, int] = (4, 4)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def png_data_uri(color: tuple[int, int, int] = (200, 40, 40)) -> str:
    return f"data:image/png;base64,{png_base64(color)}"


def create_character(
    id: str = "c1",
    name: str = "Alice",
    description: str = "red coat, short hair",
    **images: str | None,
) -> Character:
    return Character(id=id, name=name, description=description, **images)


def create_product(
    id: str = "p1",
    name: str = "Soda",
    master_image: str | None = None,
    **views: str | None,
) -> Product:
    return Product(id=id, name=name, description="a can", master_image=master_image, views=ProductViews(**views))


def create_scene(
    id: str,
    scene_number: str,
    *,
    group_id: str | None = "g1",
    context: str = "A quiet street at dawn",
    image: str | None = None,
    **fields,
) -> Scene:
    return Scene(
        id=id,
        scene_number=scene_number,
        group_id=group_id,
        context_description=context,
        generated_image=image,
        **fields,
    )


def create_group(id: str = "g1", name: str = "Old Town", description: str = "", **fields) -> SceneGroup:
    return SceneGroup(id=id, name=name, description=description, **fields)


def create_state(
    scenes: list[Scene] | None = None,
    *,
    groups: list[SceneGroup] | None = None,
    characters: list[Character] | None = None,
    products: list[Product] | None = None,
    **fields,
) -> ProjectState:
    return ProjectState(
        project_name="Test Project",
        scenes=scenes or [],
        scene_groups=groups if groups is not None else [create_group()],
        characters=characters or [],
        products=products or [],
        **fields,
    )


def create_storyboard(count: int = 3, *, rendered: tuple[int, ...] = (), group_id: str = "g1") -> ProjectState:
    """count 个同组场景，编号 1..count；rendered 中的编号已有图片"""
    scenes = [
        create_scene(
            f"s{n}",
            str(n),
            group_id=group_id,
            context=f"Shot {n} of the chase",
            image=png_data_uri((n * 20, 0, 0)) if n in rendered else None,
        )
        for n in range(1, count + 1)
    ]
    return create_state(scenes, groups=[create_group(group_id)])
