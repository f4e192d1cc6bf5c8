"""Profile intake package"""
from .models import ProfileDraft, ProfileInput

__all__ = ["ProfileDraft", "ProfileInput"]
