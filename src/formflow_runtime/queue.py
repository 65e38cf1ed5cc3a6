"""Queue builder — flattens a storyboard tree into the ordered block queue.

The queue is built once per form load.  Groups are replaced by their
children (recursively, depth-first, each level ordered by ``sequence``);
group blocks themselves never appear in the result.  Every emitted block
that sat inside one or more groups is a copy carrying those groups in
``ancestors`` so the evaluator can let a group's rules gate its children.

Usage::

    queue = build_queue(storyboard.blocks)
    [b.id for b in queue]   # ["intro", "name", "email", ...]
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from formflow_runtime.models.block import Block

logger = logging.getLogger(__name__)


def build_queue(blocks: Iterable[Block]) -> list[Block]:
    """Return the leaf blocks of ``blocks`` in depth-first, sequence order.

    Nesting may come from ``parent_block`` references, from ``children``
    lists, or a mix of both.  A block whose ``parent_block`` does not name
    a block of the storyboard is treated as top-level.  Sorting is stable,
    so blocks sharing a ``sequence`` keep their input order.
    """
    nodes = _collect(blocks)
    known_ids = {b.id for b in nodes}

    roots: list[Block] = []
    children: dict[str, list[Block]] = defaultdict(list)
    for block in nodes:
        parent = block.parent_block
        if parent is not None and parent in known_ids and parent != block.id:
            children[parent].append(block)
        else:
            if parent is not None and parent not in known_ids:
                logger.warning("Block %s references unknown parent %s, treating as top-level", block.id, parent)
            roots.append(block)

    queue: list[Block] = []
    visited: set[str] = set()

    def walk(level: list[Block], ancestors: tuple[Block, ...]) -> None:
        for block in sorted(level, key=lambda b: b.sequence):
            if block.id in visited:
                logger.warning("Block %s reached twice while flattening, skipping", block.id)
                continue
            visited.add(block.id)

            if block.is_group:
                walk(children.get(block.id, []), ancestors + (block,))
            elif ancestors:
                queue.append(block.model_copy(update={"ancestors": list(ancestors)}))
            else:
                queue.append(block)

    walk(roots, ())

    # Blocks whose parent chain loops back on itself never hang off a root
    unreachable = [b.id for b in nodes if b.id not in visited]
    if unreachable:
        logger.warning("Blocks unreachable from the top level (parent cycle?), dropped: %s", unreachable)
    return queue


def _collect(blocks: Iterable[Block]) -> list[Block]:
    """Unnest ``children`` lists into one flat list with ``parent_block`` set."""
    flat: list[Block] = []

    def visit(block: Block, parent_id: str | None) -> None:
        if parent_id is not None and block.parent_block != parent_id:
            block = block.model_copy(update={"parent_block": parent_id})
        nested = block.children
        if nested:
            block = block.model_copy(update={"children": []})
        flat.append(block)
        for child in nested:
            visit(child, block.id)

    for block in blocks:
        visit(block, None)
    return flat
