"""
farms - Farm templates the registry can clone.
"""

from .fixed_rate import FarmPhase, FarmTerms, FixedRateFarm

__all__ = ['FarmPhase', 'FarmTerms', 'FixedRateFarm']
