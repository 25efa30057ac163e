from typing import Any, Dict

import jwt

from closet.core.config import settings


def decode_token(tok: str) -> Dict[str, Any]:
    """Decode an access token issued by the external auth provider."""
    opts = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    return jwt.decode(
        tok,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALG],
        audience=settings.JWT_AUDIENCE or None,
        options=opts,
    )
