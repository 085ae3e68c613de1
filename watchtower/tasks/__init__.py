"""Periodic watchtower duties."""

from watchtower.tasks.challenges import AlertResponder, RebuttalResponder, RespondChallengesTask
from watchtower.tasks.price import SubmitPriceTask

__all__ = ["AlertResponder", "RebuttalResponder", "RespondChallengesTask", "SubmitPriceTask"]
