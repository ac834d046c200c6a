"""Relationship between the signed-in account and another actor."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RelationshipState:
    is_following: bool = False
    is_followed_by: bool = False
    is_muting: bool = False
    is_blocking: bool = False
    follow_requested: bool = False

    @property
    def is_mutual(self) -> bool:
        return self.is_following and self.is_followed_by

    @property
    def can_follow(self) -> bool:
        return not self.is_blocking
