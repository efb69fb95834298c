"""Durable store for readings parked across a checkout redirect.

One JSON file per correlation id under config.RESUME_DIR, holding the same
keys the browser used to keep in local storage. Entries are read once and
then removed. Checkout session ids that have already been resumed are
recorded so a reload cannot replay a paid reading. Both are pruned once
they are older than config.RESUME_MAX_AGE_DAYS.
"""

import json
import os
import time
import uuid
from typing import Dict, List, Optional

from . import config
from .models import PendingReading

KEY_QUESTION = "tarot_question"
KEY_USER_INFO = "tarot_userInfo"
KEY_CARD_IDS = "tarot_cardIds"
KEY_READING_TYPE = "tarot_readingType"
RESUME_KEYS = (KEY_QUESTION, KEY_USER_INFO, KEY_CARD_IDS, KEY_READING_TYPE)

_CONSUMED_FILE = "consumed.json"


def _mkdir(p: str) -> None:
    os.makedirs(p, exist_ok=True)


def _path(resume_id: str) -> str:
    # ids are generated here; reject anything that could escape the directory
    if not resume_id or os.path.basename(resume_id) != resume_id or resume_id.startswith("."):
        raise ValueError(f"Invalid resume id: {resume_id!r}")
    return os.path.join(config.RESUME_DIR, f"pending-{resume_id}.json")


def join_card_ids(card_ids: List[int]) -> str:
    return ",".join(str(i) for i in card_ids)


def split_card_ids(raw: Optional[str]) -> List[int]:
    out: List[int] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            out.append(int(part))
        except ValueError:
            continue
    return out


def save_pending(pending: PendingReading) -> str:
    _mkdir(config.RESUME_DIR)
    prune_old()
    resume_id = str(uuid.uuid4())
    entry = {
        KEY_QUESTION: pending.question,
        KEY_USER_INFO: pending.user_info,
        KEY_CARD_IDS: join_card_ids(pending.card_ids),
        KEY_READING_TYPE: pending.spread_type,
        "created": time.time(),
    }
    with open(_path(resume_id), "w", encoding="utf-8") as f:
        json.dump(entry, f, indent=2)
    return resume_id


def load_pending(resume_id: str) -> Optional[Dict[str, str]]:
    try:
        path = _path(resume_id)
    except ValueError:
        return None
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return {k: data[k] for k in RESUME_KEYS if data.get(k) not in (None, "")}


def clear_pending(resume_id: str) -> None:
    try:
        path = _path(resume_id)
    except ValueError:
        return
    if os.path.exists(path):
        os.remove(path)


def take_pending(resume_id: Optional[str]) -> Optional[Dict[str, str]]:
    """Read an entry and remove it in one step."""
    if not resume_id:
        return None
    entry = load_pending(resume_id)
    clear_pending(resume_id)
    return entry


def _consumed_path() -> str:
    return os.path.join(config.RESUME_DIR, _CONSUMED_FILE)


def _load_consumed() -> Dict[str, float]:
    path = _consumed_path()
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_consumed(consumed: Dict[str, float]) -> None:
    _mkdir(config.RESUME_DIR)
    with open(_consumed_path(), "w", encoding="utf-8") as f:
        json.dump(consumed, f, indent=2)


def is_consumed(checkout_session_id: str) -> bool:
    return checkout_session_id in _load_consumed()


def mark_consumed(checkout_session_id: str) -> None:
    consumed = _load_consumed()
    consumed.setdefault(checkout_session_id, time.time())
    _write_consumed(consumed)
    prune_old()


def prune_old(max_days: Optional[int] = None) -> int:
    """Remove parked readings and consumed ids older than max_days. Returns how many went."""
    if max_days is None:
        max_days = config.RESUME_MAX_AGE_DAYS
    if not os.path.isdir(config.RESUME_DIR):
        return 0
    cutoff = time.time() - max_days * 24 * 3600
    removed = 0

    for name in os.listdir(config.RESUME_DIR):
        if not (name.startswith("pending-") and name.endswith(".json")):
            continue
        path = os.path.join(config.RESUME_DIR, name)
        with open(path, "r", encoding="utf-8") as f:
            created = json.load(f).get("created", 0)
        if created < cutoff:
            os.remove(path)
            removed += 1

    consumed = _load_consumed()
    fresh = {sid: ts for sid, ts in consumed.items() if ts >= cutoff}
    if len(fresh) != len(consumed):
        removed += len(consumed) - len(fresh)
        _write_consumed(fresh)
    return removed
