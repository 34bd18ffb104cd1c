from __future__ import annotations

import hashlib
import json
import random
from datetime import datetime
from typing import Any, Mapping


def _normalize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _normalize(val) for key, val in sorted(value.items(), key=lambda item: str(item[0]))}
    if isinstance(value, (list, tuple, set, frozenset)):
        normalized = [_normalize(item) for item in value]
        if isinstance(value, (set, frozenset)):
            return sorted(normalized, key=lambda item: json.dumps(item, sort_keys=True, separators=(",", ":")))
        return normalized
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def derive_seed(namespace: str, context: Mapping[str, Any]) -> int:
    normalized = _normalize(context)
    payload = {"namespace": namespace, "context": normalized}
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str, allow_nan=False)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return int(digest, 16) % (2**32)


def derive_rng(namespace: str, context: Mapping[str, Any]) -> random.Random:
    return random.Random(derive_seed(namespace, context))
