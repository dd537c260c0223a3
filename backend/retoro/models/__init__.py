from .auth import User, SessionToken, MagicLinkToken
from .returns import RetailerPolicy, ReturnItem

__all__ = [
    'User', 'SessionToken', 'MagicLinkToken',
    'RetailerPolicy', 'ReturnItem',
]
