# Re-export Beanie documents
from .user import User
from .otp import OneTimeCode

DOCUMENT_MODELS = [User, OneTimeCode]
