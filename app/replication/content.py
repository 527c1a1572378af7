"""Page content copying.

Duplicates a template page's block tree under a replica, best-effort.

Nested blocks are placed with a heuristic: the children of a source
block are appended under the *last* top-level block of the destination,
provided that block is a container (has children, or is a column
layout block). This is an approximation of the source tree, not an
exact structural copy; a nested subtree may land under a different
parent than in the source, or be skipped when the last block is not a
container. Any failure inside a subtree is logged and does not affect
the replica itself.
"""

import logging
from typing import Any

from app.interfaces.record_store import BaseRecordStore, RecordStoreError

logger = logging.getLogger(__name__)

# Provenance and store-managed keys that cannot be sent back on append
STRIPPED_BLOCK_KEYS = frozenset(
    {
        "id",
        "created_time",
        "last_edited_time",
        "created_by",
        "last_edited_by",
        "parent",
        "has_children",
        "archived",
        "in_trash",
        "request_id",
    }
)

CONTAINER_BLOCK_TYPES = frozenset({"column_list", "column"})


def clean_block(block: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a block without provenance metadata."""
    return {key: value for key, value in block.items() if key not in STRIPPED_BLOCK_KEYS}


def is_container(block: dict[str, Any]) -> bool:
    """Whether nested blocks may be appended under this block."""
    return bool(block.get("has_children")) or block.get("type") in CONTAINER_BLOCK_TYPES


class ContentCopier:
    """Copies block trees between pages of a record store.

    Attributes:
        max_depth: Deepest nesting level followed below the top level.
    """

    def __init__(self, store: BaseRecordStore, max_depth: int = 3) -> None:
        self._store = store
        self.max_depth = max_depth

    async def copy(self, source_id: str, destination_id: str) -> int:
        """Copy the content of one page under another.

        Top-level failures propagate to the caller; nested failures are
        logged and swallowed per subtree.

        Args:
            source_id: Template page id.
            destination_id: Replica page id.

        Returns:
            The number of blocks appended.

        Raises:
            RecordStoreError: If the top-level blocks cannot be read or appended.
        """
        logger.info(f"Copying content blocks from {source_id} to {destination_id}")

        blocks = await self._store.list_child_blocks(source_id)
        if not blocks:
            return 0

        await self._store.append_child_blocks(destination_id, [clean_block(b) for b in blocks])
        copied = len(blocks)

        for block in blocks:
            if block.get("has_children") and block.get("id"):
                copied += await self._copy_nested(block["id"], destination_id, depth=1)

        return copied

    async def _copy_nested(self, source_block_id: str, destination_id: str, depth: int) -> int:
        """Append a source block's children under the destination's last container."""
        try:
            children = await self._store.list_child_blocks(source_block_id)
            if not children:
                return 0

            destination_blocks = await self._store.list_child_blocks(destination_id)
            if not destination_blocks:
                return 0

            target = destination_blocks[-1]
            if not is_container(target):
                logger.debug(
                    f"Skipping {len(children)} nested block(s) of {source_block_id}: "
                    f"last destination block is a '{target.get('type')}', not a container"
                )
                return 0

            await self._store.append_child_blocks(target["id"], [clean_block(c) for c in children])
            copied = len(children)

            if depth < self.max_depth:
                for child in children:
                    if child.get("has_children") and child.get("id"):
                        copied += await self._copy_nested(child["id"], target["id"], depth + 1)

            return copied

        except RecordStoreError as e:
            logger.error(f"Error copying child blocks of {source_block_id}: {e.message}")
            return 0
        except Exception as e:
            logger.error(
                f"Unexpected error copying child blocks of {source_block_id}: {e}",
                exc_info=True,
            )
            return 0
