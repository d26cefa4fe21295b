"""Merchant onboarding case intake: checklist rules, extraction and case packaging."""

__version__ = "0.1.0"
