from .tokens import Principal, TokenValidator, issue_token

__all__ = ["Principal", "TokenValidator", "issue_token"]
