"""Per-user memory partitions.

Each partition is a tuple in insertion order. Appending builds a new tuple and a
new partition mapping under a lock; readers grab the tuple once and never block.
The store refuses any read where the requester is not the partition owner.
"""

import os
import threading
from typing import Mapping

from shared.exceptions.errors import AccessDenied, InvalidInput, NotFound
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperPersistence import atomic_json_save, load_json
from shared.models.memory import Memory

SNAPSHOT_FILE = "memories.json"


class MemoryStore:
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._persist_dir = helper_config.get_optional_string_val("KB_PERSIST_DIR")
        self._write_lock = threading.Lock()
        self._partitions: Mapping[str, tuple[Memory, ...]] = {}

    def boot(self) -> None:
        """Load persisted memories, if any."""
        if not self._persist_dir:
            return
        raw = load_json(os.path.join(self._persist_dir, SNAPSHOT_FILE), default={})
        partitions = {
            user_id: tuple(Memory.model_validate(item) for item in items)
            for user_id, items in raw.items()
        }
        with self._write_lock:
            self._swap(partitions)
        self.logging.info(
            "Loaded %d memories for %d user(s).",
            sum(len(p) for p in partitions.values()),
            len(partitions),
        )

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @staticmethod
    def _check_access(requester_id: str, user_id: str) -> None:
        if not user_id:
            raise InvalidInput("user_id must not be empty.")
        if requester_id != user_id:
            raise AccessDenied(f"Requester '{requester_id}' may not read memories of '{user_id}'.")

    ##########################################
    ################ READS ###################
    ##########################################

    def list_for(self, requester_id: str, user_id: str) -> tuple[Memory, ...]:
        """Return a user's memories in insertion order.

        Raises:
            AccessDenied: If requester_id differs from user_id.
        """
        self._check_access(requester_id, user_id)
        return self._partitions.get(user_id, ())

    def get(self, requester_id: str, user_id: str, memory_id: str) -> Memory:
        """
        Raises:
            AccessDenied: If requester_id differs from user_id.
            NotFound: If the memory is not in the user's partition.
        """
        for memory in self.list_for(requester_id, user_id):
            if memory.id == memory_id:
                return memory
        raise NotFound(f"Memory '{memory_id}' not found.")

    ##########################################
    ################ WRITES ##################
    ##########################################

    def append(self, requester_id: str, memory: Memory) -> Memory:
        """Add a memory to its owner's partition.

        Raises:
            AccessDenied: If requester_id differs from memory.user_id.
        """
        self._check_access(requester_id, memory.user_id)
        with self._write_lock:
            partitions = dict(self._partitions)
            partitions[memory.user_id] = partitions.get(memory.user_id, ()) + (memory,)
            self._swap(partitions)
        return memory

    def _swap(self, partitions: dict[str, tuple[Memory, ...]]) -> None:
        """Publish a new partition mapping. Caller holds the write lock."""
        if self._persist_dir:
            atomic_json_save(
                os.path.join(self._persist_dir, SNAPSHOT_FILE),
                {
                    user_id: [memory.model_dump(mode="json") for memory in memories]
                    for user_id, memories in partitions.items()
                },
            )
        self._partitions = partitions
