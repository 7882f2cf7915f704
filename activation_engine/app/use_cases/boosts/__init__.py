"""Boost lifecycle use cases"""
from .pause_boost import PauseBoost
from .resume_boost import ResumeBoost
from .deactivate_boost import DeactivateBoost
from .dtos import BoostCommandDTO, BoostStateDTO

__all__ = [
    "PauseBoost",
    "ResumeBoost",
    "DeactivateBoost",
    "BoostCommandDTO",
    "BoostStateDTO",
]
