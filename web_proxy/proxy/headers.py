from typing import Mapping, MutableMapping


def inject_headers(target: MutableMapping[str, str], headers: Mapping[str, str]) -> None:
    """
    Set every configured header on ``target``, replacing any existing value.

    ``target`` may be an httpx ``Headers``, a Starlette ``MutableHeaders`` or a
    plain dict. The first two already replace case-insensitively; for a plain
    dict an existing key that differs only in case is dropped first.
    """
    for name, value in headers.items():
        if isinstance(target, dict):
            for existing in [k for k in target if k.lower() == name.lower()]:
                del target[existing]
        target[name] = value
