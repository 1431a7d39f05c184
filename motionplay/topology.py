"""Kinematic chains, joint/bone colors and bone connections for T2M skeletons."""

import logging
from dataclasses import dataclass
from functools import lru_cache

from .config import SKELETON

log = logging.getLogger(__name__)

BASE_JOINTS = int(SKELETON["base_joints"])
JOINT_NAMES = list(SKELETON["joint_names"])

# (name, chain) in color order: base chains first, then left/right hand digits
BASE_CHAINS = [(name, tuple(chain)) for name, chain in SKELETON["chains"].items()]
HAND_CHAINS = [(name, tuple(chain)) for name, chain in SKELETON["hand_chains"].items()]

CHAIN_COLORS = list(SKELETON["chain_colors"])
DEFAULT_COLOR = SKELETON["default_color"]
SPINE_JOINTS = tuple(SKELETON["spine_joints"])
SPINE_COLOR = CHAIN_COLORS[int(SKELETON["spine_color_index"])]


@dataclass(frozen=True)
class Bone:
    parent: int
    child: int
    color: str


@dataclass(frozen=True)
class Topology:
    joints_num: int
    chain_names: tuple
    chains: tuple         # tuple of joint-index tuples
    chain_colors: tuple   # one hex color per chain
    joint_colors: tuple   # one hex color per joint
    bones: tuple          # Bone per consecutive pair within each chain

    @property
    def bone_connections(self):
        return [(b.parent, b.child) for b in self.bones]

    def joint_colors_rgba(self):
        return [hex_to_rgba(c) for c in self.joint_colors]


def hex_to_rgba(color, alpha=255):
    """'#2f6bdb' → [47, 107, 219, 255]"""
    h = color.lstrip("#")
    return [int(h[i:i + 2], 16) for i in (0, 2, 4)] + [alpha]


@lru_cache(maxsize=None)
def build_topology(joints_num: int) -> Topology:
    """Derive the (immutable) topology for a skeleton with ``joints_num`` joints."""
    joints_num = int(joints_num)
    candidates = list(BASE_CHAINS)
    if joints_num > BASE_JOINTS:
        candidates += HAND_CHAINS

    # Colors are bound by position, so cap before dropping incomplete chains
    colored = min(len(candidates), len(CHAIN_COLORS))
    names, chains, colors = [], [], []
    for i in range(colored):
        name, chain = candidates[i]
        if max(chain) >= joints_num:
            log.debug("Skipping chain %s: needs joint %d of %d", name, max(chain), joints_num)
            continue
        names.append(name)
        chains.append(chain)
        colors.append(CHAIN_COLORS[i])

    joint_colors = [DEFAULT_COLOR] * joints_num
    for chain, color in zip(chains, colors):
        for j in chain:
            joint_colors[j] = color

    # Spine joints keep the torso color even when a limb chain lists them
    for j in SPINE_JOINTS:
        if j < joints_num:
            joint_colors[j] = SPINE_COLOR

    bones = []
    for chain, color in zip(chains, colors):
        for i in range(len(chain) - 1):
            bones.append(Bone(chain[i], chain[i + 1], color))

    return Topology(
        joints_num=joints_num,
        chain_names=tuple(names),
        chains=tuple(chains),
        chain_colors=tuple(colors),
        joint_colors=tuple(joint_colors),
        bones=tuple(bones),
    )
