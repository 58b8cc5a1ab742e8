from .jwt_handler import PartnerTokenSigner, decode_signing_secret
from .api_key import verify_api_key, is_known_caller

__all__ = [
    "PartnerTokenSigner",
    "decode_signing_secret",
    "verify_api_key",
    "is_known_caller"
]
