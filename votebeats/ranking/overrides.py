"""
Manual override layer: DJ locks merged over a computed ordering at read time.
"""
from typing import Dict, List

from votebeats.ranking.types import ManualLock, ScoreEntry


def _lock_age_key(lock: ManualLock):
    # locks without a timestamp count as the oldest
    if lock.set_at is None:
        return (0, 0.0, lock.request_id)
    return (1, lock.set_at.timestamp(), lock.request_id)


def apply_manual_locks(entries: List[ScoreEntry], locks: List[ManualLock]) -> List[ScoreEntry]:
    """
    Return the displayed order for one mode.

    Locked requests take their 1-based `manual_order` slot (clamped to the
    list length); when two locks claim a slot the most recently set one wins
    and the other request is shown unlocked. Unlocked requests fill the
    remaining slots in computed order. Input entries are not modified.
    """
    size = len(entries)
    present = {entry.request_id for entry in entries}

    slot_owner: Dict[int, str] = {}
    owned_slot: Dict[str, int] = {}
    for lock in sorted(locks, key=_lock_age_key):
        if lock.request_id not in present or lock.request_id in owned_slot:
            continue
        slot = min(max(lock.manual_order, 1), size)
        previous = slot_owner.get(slot)
        if previous is not None:
            del owned_slot[previous]
        slot_owner[slot] = lock.request_id
        owned_slot[lock.request_id] = slot

    by_id = {entry.request_id: entry for entry in entries}
    unlocked = iter([e for e in entries if e.request_id not in owned_slot])

    displayed = []
    for slot in range(1, size + 1):
        request_id = slot_owner.get(slot)
        if request_id is not None:
            entry = by_id[request_id].model_copy(update={"manual_order": slot, "position": slot})
        else:
            entry = next(unlocked).model_copy(update={"manual_order": None, "position": slot})
        displayed.append(entry)
    return displayed
