"""分类颜色分配

从固定调色板中为新分类挑选一个尚未使用的颜色；
调色板用尽后允许随机复用。
"""

import random
from collections.abc import Iterable

# 固定调色板（分类的 color 字段只取这些值）
CATEGORY_PALETTE: tuple[str, ...] = (
    "blue",
    "purple",
    "green",
    "orange",
    "pink",
    "teal",
    "indigo",
    "rose",
    "amber",
    "cyan",
)


def pick_color(used_colors: Iterable[str], rng=random) -> str:
    """挑选一个分类颜色

    Args:
        used_colors: 当前用户已在使用的颜色
        rng: 提供 choice() 的随机源，测试中可替换为固定种子的 random.Random

    Returns:
        未被使用的调色板颜色（均匀随机）；全部已用时返回任意调色板颜色
    """
    used = set(used_colors)
    available = [color for color in CATEGORY_PALETTE if color not in used]
    if not available:
        return rng.choice(CATEGORY_PALETTE)
    return rng.choice(available)
