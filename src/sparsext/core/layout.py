"""Block layout of the sparse space-time unknowns."""

from typing import List, Sequence


def temporal_block_sizes(min_level: int, max_level: int) -> List[int]:
    """
    Number of temporal basis functions per hierarchical block.

    Block 0 is the nodal basis on 2^min_level intervals; block m >= 1 holds
    the 2^(min_level + m - 1) hat functions added by level min_level + m.
    """
    if min_level < 0 or max_level < min_level:
        raise ValueError(f"Invalid temporal level range [{min_level}, {max_level}]")
    sizes = [2 ** min_level + 1]
    sizes.extend(2 ** (min_level + m - 1) for m in range(1, max_level - min_level + 1))
    return sizes


def space_time_block_sizes(temporal_sizes: Sequence[int],
                           spatial_sizes: Sequence[int]) -> List[int]:
    """
    Sizes of the space-time blocks.

    Temporal block i is paired with spatial level L - 1 - i, so the finest
    spatial level carries the coarsest temporal functions.
    """
    if len(temporal_sizes) != len(spatial_sizes):
        raise ValueError(
            f"Need as many temporal blocks as spatial levels, "
            f"got {len(temporal_sizes)} and {len(spatial_sizes)}"
        )
    n_levels = len(spatial_sizes)
    return [temporal_sizes[i] * spatial_sizes[n_levels - 1 - i] for i in range(n_levels)]
